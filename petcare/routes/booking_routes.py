from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from petcare.auth.dependencies import get_current_identity
from petcare.auth.identity import Identity, PetSummary
from petcare.core.errors import (
    AppointmentInsertError,
    BookingValidationError,
    CatalogLoadError,
    SlotAlreadyTakenError,
    SlotUpdateError,
)
from petcare.database import get_db
from petcare.services.booking import BookingForm, BookingSelection, BookingWorkflow
from petcare.services.catalog import ServiceOption, SlotOption, load_available_slots, load_services

router = APIRouter(tags=['booking'])

BOOKING_ERROR_STATUS = {
    BookingValidationError: status.HTTP_400_BAD_REQUEST,
    SlotAlreadyTakenError: status.HTTP_409_CONFLICT,
    AppointmentInsertError: status.HTTP_502_BAD_GATEWAY,
    SlotUpdateError: status.HTTP_502_BAD_GATEWAY,
}


class BookingFormResponse(BaseModel):
    pets: list[PetSummary]
    services: list[ServiceOption]
    slots: list[SlotOption]
    errors: dict[str, str]


class CreateAppointmentRequest(BookingSelection):
    pass


class AppointmentCreatedResponse(BaseModel):
    id: int
    slot_id: int
    message: str


@router.get('/services', response_model=list[ServiceOption])
def list_services(db: Session = Depends(get_db)):
    try:
        return load_services(db)
    except CatalogLoadError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc


@router.get('/slots', response_model=list[SlotOption])
def list_available_slots(db: Session = Depends(get_db)):
    try:
        return load_available_slots(db)
    except CatalogLoadError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc


@router.get('/form', response_model=BookingFormResponse)
def get_booking_form(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    form = BookingForm(db, identity).load()
    return BookingFormResponse(
        pets=form.pets,
        services=form.catalog.services,
        slots=form.catalog.slots,
        errors={error.catalog: error.message for error in form.load_errors},
    )


@router.post('/appointments', response_model=AppointmentCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    result = BookingWorkflow(db).book(data, identity)
    if not result.ok:
        error_status = BOOKING_ERROR_STATUS.get(type(result.error), status.HTTP_400_BAD_REQUEST)
        raise HTTPException(
            status_code=error_status,
            detail={'step': result.error.step, 'message': result.message},
        )
    return AppointmentCreatedResponse(id=result.appointment_id, slot_id=data.slot_id, message=result.message)
