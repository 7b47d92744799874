"""Scheduling errors - each maps to the HTTP status the API surfaces"""


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling domain"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SchedulingError):
    """Service, booking or provider does not exist"""

    status_code = 404


class InvalidSlotError(SchedulingError):
    """Requested slot breaks an availability rule (past, outside recurrence/window, bad duration)"""

    status_code = 400


class SlotConflictError(SchedulingError):
    """Slot was taken between listing and reservation; re-list and retry"""

    status_code = 409


class ReservationTimeoutError(SlotConflictError):
    """Reservation gave up waiting on the provider's critical section; nothing was written"""


class ForbiddenError(SchedulingError):
    """Actor tried a transition outside its role, or on a booking it is not party to"""

    status_code = 403


class InvalidTransitionError(SchedulingError):
    """Transition is allowed for the role but not from the booking's current state"""

    status_code = 409


class StoreError(SchedulingError):
    """Record store failure unrelated to slot contention"""

    status_code = 500
