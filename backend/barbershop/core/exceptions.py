"""
Custom exceptions for the application.
Centralized error kinds raised by the scheduling engine.
"""


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling engine."""

    pass


class ScheduleClosedError(SchedulingError):
    """The requested day has no open hours."""

    pass


class SlotUnavailableError(SchedulingError):
    """
    The requested start time does not fit anymore.

    Raised when re-validation inside the booking transaction fails or when a
    concurrent booking claimed one of the slots first. Callers should re-fetch
    availability and let the user choose again.
    """

    user_message = "This time is no longer available, please choose another."

    def __init__(self, message: str = user_message):
        super().__init__(message)


class InvalidTransitionError(SchedulingError):
    """Illegal appointment status change (backward, same-state or unknown)."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move appointment from '{getattr(current, 'value', current)}' "
            f"to '{getattr(requested, 'value', requested)}'"
        )


class AppointmentFinalizedError(SchedulingError):
    """A completed appointment can no longer be edited."""

    pass


class SettlementNotAllowedError(SchedulingError):
    """The chosen settlement method cannot be used for this appointment."""

    pass


class ResourceNotFoundError(SchedulingError):
    """A shop, service, professional or client record does not exist."""

    pass


class AppointmentNotFoundError(ResourceNotFoundError):
    """The appointment does not exist (or belongs to another shop)."""

    pass


class ConcurrentUpdateError(SchedulingError):
    """
    A version-checked write lost against a concurrent writer.

    Used to trigger a re-attempt of the whole unit of work.
    """

    pass


class StoreUnavailableError(SchedulingError):
    """Underlying persistence failure, propagated to the caller."""

    pass


class AccrualSkipped(Exception):
    """
    Soft error: loyalty accrual was not applied.

    Logged by the lifecycle, never fails the status transition.
    """

    pass
