"""Slot resolution: the urgency ordering of ongoing agendas.

Slots are never persisted. They are recomputed from terminate_at on every
command, so a mutation that moves a deadline also moves the agenda's slot.
"""

from finiate.core.exceptions import NotFoundError, ValidationError
from finiate.domain.agenda import Agenda, AgendaStatus


def urgency_key(agenda: Agenda) -> tuple:
    """Sort key: deadline, then initiation time, then id for determinism."""
    return (agenda.terminate_at, agenda.initiate_at, str(agenda.id))


def order_slots(agendas: list[Agenda]) -> list[Agenda]:
    """Return ongoing agendas sorted by urgency; slot k is index k - 1.

    Non-ongoing agendas are dropped.
    """
    ongoing = [a for a in agendas if a.status == AgendaStatus.ONGOING and a.terminate_at is not None]
    return sorted(ongoing, key=urgency_key)


def resolve_slot(agendas: list[Agenda], slot: int) -> Agenda:
    """Return the agenda occupying 1-based `slot` among ongoing agendas.

    Raises:
        ValidationError: slot is below 1
        NotFoundError: slot exceeds the number of ongoing agendas
    """
    if slot < 1:
        raise ValidationError(f"Slot must be 1 or greater, got {slot}")

    ordered = order_slots(agendas)
    if slot > len(ordered):
        raise NotFoundError(f"No agenda in slot {slot} ({len(ordered)} ongoing)")
    return ordered[slot - 1]


def slot_of(agendas: list[Agenda], agenda_id) -> int | None:
    """Return the current slot of `agenda_id`, or None when it is not ongoing."""
    for index, agenda in enumerate(order_slots(agendas), start=1):
        if agenda.id == agenda_id:
            return index
    return None
