from booking_engine.booking.orchestrator import BookingOrchestrator
from booking_engine.booking.state_machine import (
    AttemptState,
    AttemptTrigger,
    BookingAttemptStateMachine,
    InvalidTransitionError,
)

__all__ = [
    "BookingOrchestrator",
    "BookingAttemptStateMachine",
    "AttemptState",
    "AttemptTrigger",
    "InvalidTransitionError",
]
