"""Reference data for the booking form: services, open slots and pets."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petcare.auth.identity import PetSummary
from petcare.core import config
from petcare.core.errors import CatalogLoadError
from petcare.models.pet import Pet
from petcare.models.service import Service
from petcare.models.slot import Slot

logger = logging.getLogger(__name__)

SERVICES_CATALOG = 'services'
SLOTS_CATALOG = 'slots'
PETS_CATALOG = 'pets'


class ServiceOption(BaseModel):
    id: int
    description: str

    class Config:
        from_attributes = True


class SlotOption(BaseModel):
    id: int
    date: date
    start_time: time
    is_available: bool
    display_label: str


@dataclass
class Catalog:
    services: list[ServiceOption] = field(default_factory=list)
    slots: list[SlotOption] = field(default_factory=list)
    errors: list[CatalogLoadError] = field(default_factory=list)


def format_slot_label(slot_date: date, start_time: time, fmt: str | None = None) -> str:
    return datetime.combine(slot_date, start_time).strftime(fmt or config.SLOT_LABEL_FORMAT)


def to_slot_option(slot: Slot) -> SlotOption:
    return SlotOption(
        id=slot.id,
        date=slot.date,
        start_time=slot.start_time,
        is_available=slot.is_available,
        display_label=format_slot_label(slot.date, slot.start_time),
    )


def load_services(db: Session) -> list[ServiceOption]:
    try:
        services = db.query(Service).order_by(Service.id.asc()).all()
    except SQLAlchemyError as exc:
        raise CatalogLoadError(SERVICES_CATALOG, str(exc)) from exc
    return [ServiceOption.model_validate(service) for service in services]


def load_available_slots(db: Session) -> list[SlotOption]:
    """Open slots, earliest first."""
    try:
        slots = db.query(Slot).filter(
            Slot.is_available.is_(True),
        ).order_by(Slot.date.asc(), Slot.start_time.asc(), Slot.id.asc()).all()
    except SQLAlchemyError as exc:
        raise CatalogLoadError(SLOTS_CATALOG, str(exc)) from exc
    return [to_slot_option(slot) for slot in slots]


def load_owned_pets(db: Session, owner_id: int) -> list[PetSummary]:
    try:
        pets = db.query(Pet).filter(Pet.owner_id == owner_id).order_by(Pet.id.asc()).all()
    except SQLAlchemyError as exc:
        raise CatalogLoadError(PETS_CATALOG, str(exc)) from exc
    return [PetSummary.model_validate(pet) for pet in pets]


def load_catalog(db: Session) -> Catalog:
    """Load both catalogs, keeping whichever succeeded."""
    catalog = Catalog()

    try:
        catalog.services = load_services(db)
    except CatalogLoadError as exc:
        logger.error(exc.message)
        catalog.errors.append(exc)
        # A failed statement can leave the session unusable for the next query.
        db.rollback()

    try:
        catalog.slots = load_available_slots(db)
    except CatalogLoadError as exc:
        logger.error(exc.message)
        catalog.errors.append(exc)
        db.rollback()

    return catalog
