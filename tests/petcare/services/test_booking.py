import pytest
from sqlalchemy.exc import OperationalError

from petcare.auth.identity import Identity, PetSummary
from petcare.core.errors import (
    AppointmentInsertError,
    BookingValidationError,
    SlotAlreadyTakenError,
    SlotUpdateError,
)
from petcare.models.appointment import Appointment
from petcare.models.slot import Slot
from petcare.services.booking import BookingForm, BookingSelection, BookingWorkflow
from petcare.services.catalog import load_available_slots


def _identity(owner) -> Identity:
    return Identity(
        id=owner.id,
        email=owner.email,
        role='owner',
        pets=(PetSummary(id=1, owner_id=owner.id, name='Rex'),),
        pets_loaded=True,
    )


def _slot_is_available(db, slot_id: int) -> bool:
    db.expire_all()
    return db.get(Slot, slot_id).is_available


def _appointments_for_slot(db, slot_id: int) -> list[Appointment]:
    return db.query(Appointment).filter(Appointment.slot_id == slot_id).all()


def _database_error(statement: str) -> OperationalError:
    return OperationalError(statement, {}, Exception('database is locked'))


SELECTION = BookingSelection(pet_id=1, service_id=2, slot_id=5)


def test_book_creates_appointment_and_closes_slot(booking_catalog, owner) -> None:
    db = booking_catalog

    result = BookingWorkflow(db, strict=False).book(SELECTION, _identity(owner))

    assert result.ok
    assert result.message == 'Appointment created successfully!'
    assert _slot_is_available(db, 5) is False
    appointments = _appointments_for_slot(db, 5)
    assert [appointment.id for appointment in appointments] == [result.appointment_id]
    assert (appointments[0].pets_id, appointments[0].services_id) == (1, 2)
    assert appointments[0].created_at is not None
    assert load_available_slots(db) == []


def test_book_reports_slot_update_failure_and_keeps_appointment(
    booking_catalog,
    owner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db = booking_catalog

    def broken_update(_db, _slot_id):
        raise _database_error('UPDATE available_slots')

    monkeypatch.setattr('petcare.services.booking.mark_slot_unavailable', broken_update)

    result = BookingWorkflow(db, strict=False).book(SELECTION, _identity(owner))

    assert isinstance(result.error, SlotUpdateError)
    assert result.error.step == 'update_slot'
    assert result.message.startswith('Error updating the slot:')
    assert len(_appointments_for_slot(db, 5)) == 1
    assert result.error.appointment_id == _appointments_for_slot(db, 5)[0].id
    assert _slot_is_available(db, 5) is True
    assert [slot.id for slot in load_available_slots(db)] == [5]


def test_book_does_not_touch_slot_when_insert_fails(
    booking_catalog,
    owner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db = booking_catalog

    def broken_insert(_db, _selection, commit=True):
        raise _database_error('INSERT INTO appointments')

    def unexpected_update(_db, _slot_id):
        pytest.fail('slot update must not run after a failed insert')

    monkeypatch.setattr('petcare.services.booking.insert_appointment', broken_insert)
    monkeypatch.setattr('petcare.services.booking.mark_slot_unavailable', unexpected_update)

    result = BookingWorkflow(db, strict=False).book(SELECTION, _identity(owner))

    assert isinstance(result.error, AppointmentInsertError)
    assert 'database is locked' in result.message
    assert _appointments_for_slot(db, 5) == []
    assert _slot_is_available(db, 5) is True


def test_book_rejects_unknown_slot_at_insert(booking_catalog, owner) -> None:
    db = booking_catalog

    result = BookingWorkflow(db, strict=False).book(
        BookingSelection(pet_id=1, service_id=2, slot_id=404),
        _identity(owner),
    )

    assert isinstance(result.error, AppointmentInsertError)
    assert result.error.step == 'insert_appointment'
    assert db.query(Appointment).count() == 0


def test_book_rejects_unknown_service_and_leaves_slot_open(booking_catalog, owner) -> None:
    db = booking_catalog

    result = BookingWorkflow(db, strict=False).book(
        BookingSelection(pet_id=1, service_id=999, slot_id=5),
        _identity(owner),
    )

    assert isinstance(result.error, AppointmentInsertError)
    assert _appointments_for_slot(db, 5) == []
    assert _slot_is_available(db, 5) is True


def test_strict_booking_rejects_unknown_service_and_reopens_slot(booking_catalog, owner) -> None:
    db = booking_catalog

    result = BookingWorkflow(db, strict=True).book(
        BookingSelection(pet_id=1, service_id=999, slot_id=5),
        _identity(owner),
    )

    assert isinstance(result.error, AppointmentInsertError)
    assert db.query(Appointment).count() == 0
    assert _slot_is_available(db, 5) is True


@pytest.mark.parametrize(
    ('selection', 'missing'),
    [
        (BookingSelection(pet_id=1, service_id='', slot_id=5), 'service_id'),
        (BookingSelection(service_id=2, slot_id=5), 'pet_id'),
        (BookingSelection(pet_id=1, service_id=2, slot_id='  '), 'slot_id'),
    ],
)
def test_book_rejects_incomplete_selection(booking_catalog, owner, selection, missing: str) -> None:
    db = booking_catalog

    result = BookingWorkflow(db, strict=False).book(selection, _identity(owner))

    assert isinstance(result.error, BookingValidationError)
    assert missing in result.message
    assert db.query(Appointment).count() == 0


def test_book_rejects_pet_owned_by_someone_else(booking_catalog, owner) -> None:
    db = booking_catalog

    result = BookingWorkflow(db, strict=False).book(
        BookingSelection(pet_id=99, service_id=2, slot_id=5),
        _identity(owner),
    )

    assert isinstance(result.error, BookingValidationError)
    assert result.message == 'The selected pet does not belong to you.'
    assert _slot_is_available(db, 5) is True


def test_two_step_booking_lets_two_owners_book_the_same_slot(booking_catalog, owner) -> None:
    db = booking_catalog
    workflow = BookingWorkflow(db, strict=False)

    first = workflow.book(SELECTION, _identity(owner))
    second = workflow.book(SELECTION, _identity(owner))

    assert first.ok and second.ok
    assert len(_appointments_for_slot(db, 5)) == 2


def test_strict_booking_rejects_slot_that_is_already_taken(booking_catalog, owner) -> None:
    db = booking_catalog
    workflow = BookingWorkflow(db, strict=True)

    first = workflow.book(SELECTION, _identity(owner))
    second = workflow.book(SELECTION, _identity(owner))

    assert first.ok
    assert isinstance(second.error, SlotAlreadyTakenError)
    assert second.message == 'This slot is no longer available.'
    assert [appointment.id for appointment in _appointments_for_slot(db, 5)] == [first.appointment_id]
    assert _slot_is_available(db, 5) is False


def test_strict_booking_reopens_slot_when_insert_fails(
    booking_catalog,
    owner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db = booking_catalog

    def broken_insert(_db, _selection, commit=True):
        raise _database_error('INSERT INTO appointments')

    monkeypatch.setattr('petcare.services.booking.insert_appointment', broken_insert)

    result = BookingWorkflow(db, strict=True).book(SELECTION, _identity(owner))

    assert isinstance(result.error, AppointmentInsertError)
    assert _slot_is_available(db, 5) is True
    assert _appointments_for_slot(db, 5) == []


def test_booking_form_clears_selection_after_success(booking_catalog, owner) -> None:
    db = booking_catalog
    form = BookingForm(db, _identity(owner), BookingWorkflow(db, strict=False)).load()

    assert [pet.name for pet in form.pets] == ['Rex']
    assert [service.id for service in form.catalog.services] == [2]
    assert [slot.id for slot in form.catalog.slots] == [5]

    form.choose('pet_id', '1')
    form.choose('service_id', 2)
    form.choose('slot_id', 5)
    result = form.submit()

    assert result.ok
    assert form.success == 'Appointment created successfully!'
    assert form.error == ''
    assert form.selection == BookingSelection()


def test_booking_form_keeps_selection_after_failure(
    booking_catalog,
    owner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db = booking_catalog

    def broken_update(_db, _slot_id):
        raise _database_error('UPDATE available_slots')

    monkeypatch.setattr('petcare.services.booking.mark_slot_unavailable', broken_update)
    form = BookingForm(db, _identity(owner), BookingWorkflow(db, strict=False)).load()
    form.choose('pet_id', 1)
    form.choose('service_id', 2)
    form.choose('slot_id', 5)

    result = form.submit()

    assert not result.ok
    assert form.error.startswith('Error updating the slot:')
    assert form.success == ''
    assert form.selection == SELECTION


def test_booking_form_rejects_unknown_field(booking_catalog, owner) -> None:
    form = BookingForm(booking_catalog, _identity(owner))

    with pytest.raises(ValueError):
        form.choose('groomer_id', 3)
