"""Lifecycle of a single generate call."""

from __future__ import annotations

from enum import Enum
import logging

from switchboard.errors import InternalError

logger = logging.getLogger(__name__)


class CallState(str, Enum):
    """States of one generate call."""

    IDLE = "idle"
    FORMATTING = "formatting"
    SENDING = "sending"
    WAITING = "waiting"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        """Whether no further transition is allowed."""
        return self in _TERMINAL


_TERMINAL = frozenset({CallState.COMPLETED, CallState.FAILED, CallState.CANCELLED})

_TRANSITIONS: dict[CallState, frozenset[CallState]] = {
    CallState.IDLE: frozenset(
        {CallState.FORMATTING, CallState.CANCELLED, CallState.FAILED}
    ),
    CallState.FORMATTING: frozenset(
        {CallState.SENDING, CallState.CANCELLED, CallState.FAILED}
    ),
    CallState.SENDING: frozenset(
        {CallState.WAITING, CallState.CANCELLED, CallState.FAILED}
    ),
    CallState.WAITING: frozenset(
        {
            CallState.RETRYING,
            CallState.COMPLETED,
            CallState.CANCELLED,
            CallState.FAILED,
        }
    ),
    CallState.RETRYING: frozenset(
        {CallState.SENDING, CallState.CANCELLED, CallState.FAILED}
    ),
    CallState.COMPLETED: frozenset(),
    CallState.FAILED: frozenset(),
    CallState.CANCELLED: frozenset(),
}


class CallStateMachine:
    """Tracks one call's state; illegal transitions are bugs."""

    def __init__(self, label: str = "call") -> None:
        self.label = label
        self.state = CallState.IDLE
        self.history: list[CallState] = [CallState.IDLE]

    def advance(self, target: CallState) -> None:
        """Move to *target* or raise ``InternalError``."""
        if target not in _TRANSITIONS[self.state]:
            raise InternalError(
                f"Illegal transition for {self.label}: {self.state.value} -> {target.value}"
            )
        logger.debug("%s: %s -> %s", self.label, self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def finish(self, target: CallState) -> None:
        """Enter a terminal state unless one was already reached."""
        if not target.terminal:
            raise InternalError(f"{target.value} is not a terminal state")
        if self.state.terminal:
            return
        self.advance(target)

    @property
    def done(self) -> bool:
        """Whether a terminal state was reached."""
        return self.state.terminal
