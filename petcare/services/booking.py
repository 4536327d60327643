"""Booking workflow: turn a (pet, service, slot) selection into an appointment.

Compatible mode performs two separate commits: the appointment insert,
then the slot update. Two owners who both saw a slot as open can both
insert before either flips the flag, and a failed slot update leaves an
appointment whose slot still shows as available. Both outcomes are
reported, not repaired.

Strict mode (``BOOKING_STRICT_SLOT_CLAIM``) changes that behaviour: the
slot is claimed first with ``UPDATE ... WHERE is_available`` and the
appointment is inserted in the same transaction only when exactly one row
was claimed.
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petcare.auth.identity import Identity, PetSummary
from petcare.core import config
from petcare.core.errors import (
    AppointmentInsertError,
    BookingError,
    BookingValidationError,
    CatalogLoadError,
    SlotAlreadyTakenError,
    SlotUpdateError,
)
from petcare.models.appointment import Appointment
from petcare.models.slot import Slot
from petcare.services.catalog import Catalog, load_catalog, load_owned_pets

logger = logging.getLogger(__name__)

BOOKING_SUCCESS_MESSAGE = 'Appointment created successfully!'
SELECTION_FIELDS = ('pet_id', 'service_id', 'slot_id')


class BookingSelection(BaseModel):
    pet_id: int | None = None
    service_id: int | None = None
    slot_id: int | None = None

    @field_validator('pet_id', 'service_id', 'slot_id', mode='before')
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def missing_fields(self) -> list[str]:
        return [name for name in SELECTION_FIELDS if getattr(self, name) is None]


@dataclass(frozen=True)
class BookingResult:
    appointment_id: int | None = None
    error: BookingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return BOOKING_SUCCESS_MESSAGE if self.error is None else self.error.message


def insert_appointment(db: Session, selection: BookingSelection, commit: bool = True) -> Appointment:
    appointment = Appointment(
        pets_id=selection.pet_id,
        services_id=selection.service_id,
        slot_id=selection.slot_id,
    )
    db.add(appointment)
    if commit:
        db.commit()
    else:
        db.flush()
    db.refresh(appointment)
    return appointment


def mark_slot_unavailable(db: Session, slot_id: int) -> int:
    updated = db.query(Slot).filter(Slot.id == slot_id).update(
        {Slot.is_available: False},
        synchronize_session=False,
    )
    db.commit()
    return updated


def claim_slot(db: Session, slot_id: int) -> int:
    """Flip the slot only if it is still open. Does not commit."""
    return db.query(Slot).filter(
        Slot.id == slot_id,
        Slot.is_available.is_(True),
    ).update({Slot.is_available: False}, synchronize_session=False)


class BookingWorkflow:
    def __init__(self, db: Session, strict: bool | None = None):
        self.db = db
        self.strict = config.BOOKING_STRICT_SLOT_CLAIM if strict is None else strict

    def validate(self, selection: BookingSelection, identity: Identity | None = None) -> None:
        missing = selection.missing_fields()
        if missing:
            raise BookingValidationError(f'Missing required fields: {", ".join(missing)}')

        if identity is not None and identity.pets_loaded:
            owned_pet_ids = {pet.id for pet in identity.pets}
            if selection.pet_id not in owned_pet_ids:
                raise BookingValidationError('The selected pet does not belong to you.')

    def book(self, selection: BookingSelection, identity: Identity | None = None) -> BookingResult:
        try:
            self.validate(selection, identity)
            if self.strict:
                appointment_id = self._book_with_claim(selection)
            else:
                appointment_id = self._book_in_two_steps(selection)
        except BookingError as exc:
            return BookingResult(error=exc)

        logger.info('Booked slot %s for pet %s (appointment %s)', selection.slot_id, selection.pet_id, appointment_id)
        return BookingResult(appointment_id=appointment_id)

    def _book_in_two_steps(self, selection: BookingSelection) -> int:
        try:
            appointment = insert_appointment(self.db, selection)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Appointment insert failed for slot %s', selection.slot_id)
            raise AppointmentInsertError(str(exc)) from exc
        appointment_id = appointment.id

        try:
            updated = mark_slot_unavailable(self.db, selection.slot_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(
                'Appointment %s exists but slot %s is still marked available: %s',
                appointment_id, selection.slot_id, exc,
            )
            raise SlotUpdateError(selection.slot_id, appointment_id, str(exc)) from exc

        if updated != 1:
            logger.warning(
                'Appointment %s exists but slot %s matched no row on update',
                appointment_id, selection.slot_id,
            )
            raise SlotUpdateError(selection.slot_id, appointment_id, 'slot not found')

        return appointment_id

    def _book_with_claim(self, selection: BookingSelection) -> int:
        try:
            claimed = claim_slot(self.db, selection.slot_id)
            if claimed != 1:
                self.db.rollback()
                raise SlotAlreadyTakenError(selection.slot_id)
            appointment_id = insert_appointment(self.db, selection, commit=False).id
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Claimed booking failed for slot %s', selection.slot_id)
            raise AppointmentInsertError(str(exc)) from exc

        return appointment_id


class BookingForm:
    """In-progress booking for one owner.

    Mirrors what the booking page keeps: the owner's pets, the catalogs, the
    current selection and the last error or success message.
    """

    def __init__(self, db: Session, identity: Identity, workflow: BookingWorkflow | None = None):
        self.db = db
        self.identity = identity
        self.workflow = workflow or BookingWorkflow(db)
        self.pets: list[PetSummary] = []
        self.catalog = Catalog()
        self.load_errors: list[CatalogLoadError] = []
        self.selection = BookingSelection()
        self.error = ''
        self.success = ''

    def load(self) -> 'BookingForm':
        self.load_errors = []
        try:
            self.pets = load_owned_pets(self.db, self.identity.id)
        except CatalogLoadError as exc:
            logger.error(exc.message)
            self.load_errors.append(exc)
            self.db.rollback()

        self.catalog = load_catalog(self.db)
        self.load_errors.extend(self.catalog.errors)
        if self.load_errors:
            # The page shows one message; the last failure wins.
            self.error = self.load_errors[-1].message
        return self

    def choose(self, field_name: str, value) -> None:
        if field_name not in SELECTION_FIELDS:
            raise ValueError(f'Unknown selection field: {field_name}')
        self.selection = BookingSelection(**{**self.selection.model_dump(), field_name: value})

    def submit(self) -> BookingResult:
        self.error = ''
        self.success = ''

        owner = self.identity.model_copy(update={'pets': tuple(self.pets), 'pets_loaded': True})
        result = self.workflow.book(self.selection, owner)
        if result.ok:
            self.success = result.message
            self.selection = BookingSelection()
        else:
            self.error = result.message
        return result
