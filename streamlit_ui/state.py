"""Per-conversation chat status for the UI."""
from enum import Enum
from typing import Dict, FrozenSet


class ChatStatus(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    STREAMING = "streaming"
    ERROR = "error"


_TRANSITIONS: Dict[ChatStatus, FrozenSet[ChatStatus]] = {
    ChatStatus.IDLE: frozenset({ChatStatus.SUBMITTED}),
    ChatStatus.SUBMITTED: frozenset(
        {ChatStatus.STREAMING, ChatStatus.IDLE, ChatStatus.ERROR}
    ),
    ChatStatus.STREAMING: frozenset({ChatStatus.IDLE, ChatStatus.ERROR}),
    # A new submit clears the error
    ChatStatus.ERROR: frozenset({ChatStatus.SUBMITTED, ChatStatus.IDLE}),
}


class InvalidTransition(ValueError):
    pass


def can_transition(current: ChatStatus, target: ChatStatus) -> bool:
    return target in _TRANSITIONS[current]


def transition(current: ChatStatus, target: ChatStatus) -> ChatStatus:
    """Return ``target`` if the move is allowed, else raise InvalidTransition."""
    if not can_transition(current, target):
        raise InvalidTransition(f"{current.value} -> {target.value}")
    return target


def is_busy(status: ChatStatus) -> bool:
    """Submissions are blocked while a request is in flight."""
    return status in (ChatStatus.SUBMITTED, ChatStatus.STREAMING)
