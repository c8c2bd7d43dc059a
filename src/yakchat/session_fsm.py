"""
yakchat - Session State Machine.

This module implements a finite state machine for the secure session
lifecycle: DISCONNECTED -> HANDSHAKE_IN_PROGRESS -> SECURE -> CLOSED, with
FAULTED as a terminal state for any handshake failure. There is no recovery
from FAULTED or CLOSED; a new connection gets a new state machine.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session states."""

    DISCONNECTED = auto()  # No transport yet
    HANDSHAKE_IN_PROGRESS = auto()  # Exchanging YAK messages
    SECURE = auto()  # Both cipher states initialized
    CLOSED = auto()  # Transport gone after a secure session
    FAULTED = auto()  # Handshake or arithmetic failure


class SessionEvent(Enum):
    """Events that trigger state transitions."""

    CONNECTION_ESTABLISHED = auto()  # Transport connected or accepted
    SECRET_DERIVED = auto()  # Peer proof verified, ciphers keyed
    HANDSHAKE_FAILED = auto()  # Proof, range, codec or arithmetic failure
    MESSAGE_SENT = auto()  # Plaintext encrypted and handed to transport
    MESSAGE_RECEIVED = auto()  # Ciphertext decrypted and delivered
    TRANSPORT_CLOSED = auto()  # Transport disconnected or failed


@dataclass
class StateTransition:
    """Represents a state transition."""

    from_state: SessionState
    event: SessionEvent
    to_state: SessionState
    timestamp: float = field(default_factory=time.time)


class SessionStateMachine:
    """
    Finite state machine for a single secure session.

    Enforces valid state transitions, tracks state history and notifies
    callbacks when the session is secured, closed or faulted.
    """

    TRANSITIONS: Dict[SessionState, Dict[SessionEvent, SessionState]] = {
        SessionState.DISCONNECTED: {
            SessionEvent.CONNECTION_ESTABLISHED: SessionState.HANDSHAKE_IN_PROGRESS,
        },
        SessionState.HANDSHAKE_IN_PROGRESS: {
            SessionEvent.SECRET_DERIVED: SessionState.SECURE,
            SessionEvent.HANDSHAKE_FAILED: SessionState.FAULTED,
            SessionEvent.TRANSPORT_CLOSED: SessionState.FAULTED,
        },
        SessionState.SECURE: {
            SessionEvent.MESSAGE_SENT: SessionState.SECURE,
            SessionEvent.MESSAGE_RECEIVED: SessionState.SECURE,
            SessionEvent.TRANSPORT_CLOSED: SessionState.CLOSED,
        },
        SessionState.CLOSED: {},
        SessionState.FAULTED: {},
    }

    TERMINAL_STATES = (SessionState.CLOSED, SessionState.FAULTED)

    def __init__(self, initial_state: SessionState = SessionState.DISCONNECTED):
        """
        Initialize state machine.

        Args:
            initial_state: Initial state (default: DISCONNECTED)
        """
        self.current_state = initial_state
        self.previous_state: Optional[SessionState] = None
        self.state_entry_time = time.time()
        self.error_message: Optional[str] = None
        self.transition_history: List[StateTransition] = []
        self.max_history = 100

        # Callbacks
        self.on_state_change: Optional[Callable[[SessionState, SessionState], None]] = None
        self.on_secure: Optional[Callable[[], None]] = None
        self.on_closed: Optional[Callable[[], None]] = None
        self.on_fault: Optional[Callable[[str], None]] = None

        logger.debug(f"Session state machine initialized in state: {self.current_state.name}")

    def transition(self, event: SessionEvent, error_msg: Optional[str] = None) -> bool:
        """
        Attempt state transition based on event.

        Args:
            event: Event triggering transition
            error_msg: Error message if event is HANDSHAKE_FAILED

        Returns:
            True if transition successful, False otherwise
        """
        if not self.is_valid_transition(self.current_state, event):
            logger.warning(
                f"Invalid transition: {self.current_state.name} + "
                f"{event.name} (no valid target state)"
            )
            return False

        new_state = self.TRANSITIONS[self.current_state][event]
        old_state = self.current_state

        if new_state == SessionState.FAULTED:
            self.error_message = error_msg or "Unknown error"

        self.previous_state = old_state
        self.current_state = new_state
        if new_state != old_state:
            self.state_entry_time = time.time()

        self.transition_history.append(StateTransition(old_state, event, new_state))
        if len(self.transition_history) > self.max_history:
            self.transition_history = self.transition_history[-self.max_history :]

        # Per-message self loops are too chatty for info level
        if new_state == old_state:
            logger.debug(f"Session event {event.name} in {new_state.name}")
            return True

        logger.info(
            f"State transition: {old_state.name} -> {new_state.name} " f"(event: {event.name})"
        )

        if self.on_state_change:
            try:
                self.on_state_change(old_state, new_state)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

        if new_state == SessionState.SECURE and self.on_secure:
            try:
                self.on_secure()
            except Exception as e:
                logger.error(f"Secure callback error: {e}")

        if new_state == SessionState.CLOSED and self.on_closed:
            try:
                self.on_closed()
            except Exception as e:
                logger.error(f"Closed callback error: {e}")

        if new_state == SessionState.FAULTED and self.on_fault:
            try:
                self.on_fault(self.error_message or "Unknown error")
            except Exception as e:
                logger.error(f"Fault callback error: {e}")

        return True

    def is_valid_transition(self, from_state: SessionState, event: SessionEvent) -> bool:
        """
        Check if a transition is valid.

        Args:
            from_state: Source state
            event: Event triggering transition

        Returns:
            True if valid, False otherwise
        """
        return event in self.TRANSITIONS.get(from_state, {})

    def get_state(self) -> SessionState:
        """Get current state."""
        return self.current_state

    def get_previous_state(self) -> Optional[SessionState]:
        """Get previous state."""
        return self.previous_state

    def get_time_in_state(self) -> float:
        """Get time spent in current state (seconds)."""
        return time.time() - self.state_entry_time

    def is_secure(self) -> bool:
        """Check if the session can encrypt and decrypt."""
        return self.current_state == SessionState.SECURE

    def is_handshaking(self) -> bool:
        """Check if the key exchange is still running."""
        return self.current_state == SessionState.HANDSHAKE_IN_PROGRESS

    def is_terminal(self) -> bool:
        """Check if the session has ended (closed or faulted)."""
        return self.current_state in self.TERMINAL_STATES

    def is_faulted(self) -> bool:
        """Check if the handshake failed."""
        return self.current_state == SessionState.FAULTED

    def get_error_message(self) -> Optional[str]:
        """Get the fault message, if any."""
        return self.error_message

    def get_history(self, count: int = 10) -> List[StateTransition]:
        """
        Get recent transition history.

        Args:
            count: Number of recent transitions to return

        Returns:
            List of recent transitions
        """
        return self.transition_history[-count:]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get state machine statistics.

        Returns:
            Dictionary with statistics
        """
        event_counts: Dict[str, int] = {}
        for transition in self.transition_history:
            event_name = transition.event.name
            event_counts[event_name] = event_counts.get(event_name, 0) + 1

        return {
            "current_state": self.current_state.name,
            "previous_state": self.previous_state.name if self.previous_state else None,
            "time_in_state": self.get_time_in_state(),
            "error_message": self.error_message,
            "total_transitions": len(self.transition_history),
            "event_counts": event_counts,
            "is_secure": self.is_secure(),
            "is_terminal": self.is_terminal(),
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"SessionStateMachine(state={self.current_state.name}, "
            f"time_in_state={self.get_time_in_state():.1f}s)"
        )
