"""Agenda lifecycle transitions and validation logic.

Pure domain logic with no external dependencies.
"""

from dataclasses import dataclass
from enum import Enum

from finiate.domain.agenda import AgendaStatus
from finiate.domain.log import LogType


class Transition(str, Enum):
    """Transitions applied to an existing agenda."""

    ACTIVATE = "activate"  # stored -> ongoing, deadline assigned
    PUT_OFF = "put_off"  # ongoing -> ongoing, deadline revised
    TERMINATE = "terminate"  # ongoing -> terminated


# Allowed source statuses and resulting status for each transition.
TRANSITIONS: dict[Transition, tuple[frozenset[AgendaStatus], AgendaStatus]] = {
    Transition.ACTIVATE: (frozenset({AgendaStatus.STORED}), AgendaStatus.ONGOING),
    Transition.PUT_OFF: (frozenset({AgendaStatus.ONGOING}), AgendaStatus.ONGOING),
    Transition.TERMINATE: (frozenset({AgendaStatus.ONGOING}), AgendaStatus.TERMINATED),
}

# Every transition pairs with exactly one log of this type.
TRANSITION_LOG_TYPES: dict[Transition, LogType] = {
    Transition.ACTIVATE: LogType.ACTIVATE,
    Transition.PUT_OFF: LogType.PUT_OFF,
    Transition.TERMINATE: LogType.TERMINATE,
}

# Status an agenda is born into, keyed by the creating command.
INITIAL_STATUS = {
    "add": AgendaStatus.ONGOING,
    "shelve": AgendaStatus.STORED,
}


@dataclass
class TransitionResult:
    """Result of a transition check."""

    allowed: bool
    reason: str = ""
    new_status: AgendaStatus | None = None


def validate_transition(current: AgendaStatus, transition: Transition) -> TransitionResult:
    """Validate whether `transition` may be applied to an agenda in `current` status.

    Pure function -- no side effects, no DB access.

    Rules:
        - TERMINATED is terminal: nothing leaves it (re-terminating is rejected, not a no-op)
        - STORED agendas have no deadline, so they can only be activated
        - ONGOING agendas can be put off or terminated, never re-activated
    """
    if current == AgendaStatus.TERMINATED:
        if transition == Transition.TERMINATE:
            return TransitionResult(False, "Agenda is already terminated")
        return TransitionResult(False, "Terminated agendas are closed")

    allowed_from, new_status = TRANSITIONS[transition]
    if current not in allowed_from:
        if current == AgendaStatus.STORED:
            return TransitionResult(False, "Stored agenda has no deadline; activate it first")
        return TransitionResult(False, "Agenda is already ongoing")

    return TransitionResult(True, new_status=new_status)
