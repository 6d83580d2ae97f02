"""Pydantic schemas returned by the lifecycle service for display."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from finiate.domain.agenda import Agenda
from finiate.domain.log import Log


class LogOut(BaseModel):
    """A single log entry."""

    id: str
    agenda_id: str | None = None
    log_type: Literal["activate", "put_off", "terminate", "common_log"]
    content: str
    create_at: datetime

    @classmethod
    def from_domain(cls, log: Log) -> "LogOut":
        return cls(
            id=str(log.id),
            agenda_id=str(log.agenda_id) if log.agenda_id is not None else None,
            log_type=log.log_type.value,
            content=log.content,
            create_at=log.create_at,
        )


class AgendaOut(BaseModel):
    """An agenda as shown to the user."""

    id: str
    title: str
    status: Literal["stored", "ongoing", "terminated"]
    initiate_at: datetime
    terminate_at: datetime | None = None

    @classmethod
    def from_domain(cls, agenda: Agenda) -> "AgendaOut":
        return cls(
            id=str(agenda.id),
            title=agenda.title,
            status=agenda.status.value,
            initiate_at=agenda.initiate_at,
            terminate_at=agenda.terminate_at,
        )


class TransitionOutcome(BaseModel):
    """Result of one lifecycle command: the agenda after the write and the paired log.

    slot is the agenda's position after re-ordering, None when it is no longer ongoing.
    """

    action: Literal["add", "shelve", "activate", "put_off", "terminate", "note"]
    agenda: AgendaOut
    log: LogOut
    slot: int | None = None


class SlotView(BaseModel):
    """One ongoing agenda in urgency order."""

    slot: int
    agenda: AgendaOut
    log_count: int = 0
    latest_log: LogOut | None = None
    overdue: bool = False


class StatusReport(BaseModel):
    """Top-N ongoing agendas. items defaults to empty array, never null."""

    requested: int
    ongoing_total: int = 0
    items: list[SlotView] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    agenda: AgendaOut
    logs: list[LogOut] = Field(default_factory=list)


class HistoryReport(BaseModel):
    """Agendas with their full log trail."""

    sort: Literal["initiate_at", "terminate_at", "title"] = "initiate_at"
    descending: bool = True
    items: list[HistoryEntry] = Field(default_factory=list)
    total: int = 0


class LogWindow(BaseModel):
    """Log entries inside an inclusive time window, each with its agenda title."""

    start: datetime
    end: datetime
    items: list[LogOut] = Field(default_factory=list)
    titles: dict[str, str] = Field(default_factory=dict, description="agenda_id -> title")


class StatusCounts(BaseModel):
    stored: int = 0
    ongoing: int = 0
    terminated: int = 0
    total: int = 0
