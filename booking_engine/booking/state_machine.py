"""
Finite state machine for a single booking attempt.

Every attempt follows an explicit path:

    requested -> validated -> conflict_checked -> persisted -> forwarded_to_sink -> confirmed

with early exits to ``rejected`` from requested, validated, conflict_checked
and persisted (when the store's atomic insert loses a race). A failed or
skipped sink forward still reaches ``confirmed``; the local booking stands.

Usage:
    sm = BookingAttemptStateMachine()
    sm.transition(AttemptTrigger.INPUT_VALID)
    assert sm.current_state == AttemptState.VALIDATED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    """All states of a booking attempt."""
    REQUESTED = "requested"
    VALIDATED = "validated"
    CONFLICT_CHECKED = "conflict_checked"
    PERSISTED = "persisted"
    FORWARDED_TO_SINK = "forwarded_to_sink"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class AttemptTrigger(str, Enum):
    """Events that move an attempt between states."""
    INPUT_VALID = "input_valid"
    INPUT_INVALID = "input_invalid"
    NO_CONFLICT = "no_conflict"
    SLOT_TAKEN = "slot_taken"
    DUPLICATE_FOUND = "duplicate_found"
    STORED = "stored"
    STORE_REJECTED = "store_rejected"
    SINK_ACCEPTED = "sink_accepted"
    SINK_FAILED = "sink_failed"
    SINK_SKIPPED = "sink_skipped"
    FINALIZED = "finalized"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: AttemptState
    to_state: AttemptState
    trigger: AttemptTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: AttemptState
    entered_at: datetime
    trigger: Optional[AttemptTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class BookingAttemptStateMachine:
    """
    Deterministic lifecycle of one create_booking call.

    The orchestrator drives it step by step; a transition that is not
    declared below raises, so steps can never be skipped or reordered.
    """

    TRANSITIONS: list[Transition] = [
        # --- Validation ---
        Transition(AttemptState.REQUESTED, AttemptState.VALIDATED, AttemptTrigger.INPUT_VALID),
        Transition(AttemptState.REQUESTED, AttemptState.REJECTED, AttemptTrigger.INPUT_INVALID),

        # --- Conflict checks ---
        Transition(AttemptState.VALIDATED, AttemptState.CONFLICT_CHECKED, AttemptTrigger.NO_CONFLICT),
        Transition(AttemptState.VALIDATED, AttemptState.REJECTED, AttemptTrigger.SLOT_TAKEN),
        Transition(AttemptState.VALIDATED, AttemptState.REJECTED, AttemptTrigger.DUPLICATE_FOUND),

        # --- Persistence ---
        Transition(AttemptState.CONFLICT_CHECKED, AttemptState.PERSISTED, AttemptTrigger.STORED),
        Transition(AttemptState.CONFLICT_CHECKED, AttemptState.REJECTED, AttemptTrigger.STORE_REJECTED),

        # --- Job sink ---
        Transition(AttemptState.PERSISTED, AttemptState.FORWARDED_TO_SINK, AttemptTrigger.SINK_ACCEPTED),
        Transition(AttemptState.PERSISTED, AttemptState.CONFIRMED, AttemptTrigger.SINK_FAILED),
        Transition(AttemptState.PERSISTED, AttemptState.CONFIRMED, AttemptTrigger.SINK_SKIPPED),

        # --- Done ---
        Transition(AttemptState.FORWARDED_TO_SINK, AttemptState.CONFIRMED, AttemptTrigger.FINALIZED),
    ]

    TERMINAL_STATES = frozenset({AttemptState.CONFIRMED, AttemptState.REJECTED})

    def __init__(self) -> None:
        self._current_state = AttemptState.REQUESTED
        self._history: list[StateEntry] = [
            StateEntry(state=AttemptState.REQUESTED, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> AttemptState:
        return self._current_state

    def transition(self, trigger: AttemptTrigger) -> AttemptState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Attempt transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[AttemptTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in self.TERMINAL_STATES
