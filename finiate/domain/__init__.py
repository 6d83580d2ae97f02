"""Pure domain logic: entities, codecs, transitions, slot ordering."""

from finiate.domain.agenda import Agenda, AgendaCreate, AgendaStatus, AgendaUpdate
from finiate.domain.log import Log, LogCreate, LogType
from finiate.domain.slots import order_slots, resolve_slot
from finiate.domain.transitions import Transition, TransitionResult, validate_transition

__all__ = [
    "Agenda",
    "AgendaCreate",
    "AgendaStatus",
    "AgendaUpdate",
    "Log",
    "LogCreate",
    "LogType",
    "Transition",
    "TransitionResult",
    "order_slots",
    "resolve_slot",
    "validate_transition",
]
