"""Domain errors raised by the identity, catalog and booking layers.

Every error carries a user-facing ``message``; routes surface it as the
HTTP ``detail`` and the booking form shows it as its error string.
"""


class PetcareError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SessionError(PetcareError):
    """The session authority could not answer a session check."""


class AuthenticationError(PetcareError):
    """Sign-in or sign-up was rejected by the session authority."""


class ProfileLookupError(PetcareError):
    """The profile row for a signed-in user could not be loaded."""

    def __init__(self, user_id: int, reason: str):
        super().__init__(f'Error fetching user details: {reason}')
        self.user_id = user_id


class CatalogLoadError(PetcareError):
    """One of the booking form catalogs failed to load."""

    def __init__(self, catalog: str, reason: str):
        super().__init__(f'Error loading {catalog}: {reason}')
        self.catalog = catalog


class BookingError(PetcareError):
    """Base class for booking failures."""

    step = 'booking'


class BookingValidationError(BookingError):
    step = 'validation'


class AppointmentInsertError(BookingError):
    step = 'insert_appointment'

    def __init__(self, reason: str):
        super().__init__(f'Error creating the appointment: {reason}')


class SlotUpdateError(BookingError):
    """The appointment exists but its slot is still marked available."""

    step = 'update_slot'

    def __init__(self, slot_id: int, appointment_id: int | None, reason: str):
        super().__init__(f'Error updating the slot: {reason}')
        self.slot_id = slot_id
        self.appointment_id = appointment_id


class SlotAlreadyTakenError(BookingError):
    step = 'claim_slot'

    def __init__(self, slot_id: int):
        super().__init__('This slot is no longer available.')
        self.slot_id = slot_id
