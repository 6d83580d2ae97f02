"""LifecycleService: orchestrates agenda transitions with their audit log.

This is the integration point where pure domain functions meet the repositories.
Every mutating method:
- Resolves its target (slot among ongoing agendas, or agenda id)
- Validates the transition before any write
- Writes the agenda change and exactly one paired log inside one unit of work
- Re-derives slot order so the returned slot reflects the new urgency ordering
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import TypeVar

import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

from finiate.core.clock import utc_now
from finiate.core.config import Settings
from finiate.core.exceptions import (
    DuplicateAgendaError,
    InvalidTransitionError,
    NotFoundError,
    PartialFailureError,
    StoreError,
    ValidationError,
)
from finiate.db.base import Database
from finiate.domain.agenda import Agenda, AgendaCreate, AgendaStatus, AgendaUpdate
from finiate.domain.log import LogCreate, LogType
from finiate.domain.slots import order_slots, resolve_slot, slot_of
from finiate.domain.timespec import as_utc, coerce_deadline, parse_span, shift
from finiate.domain.transitions import (
    INITIAL_STATUS,
    TRANSITION_LOG_TYPES,
    Transition,
    validate_transition,
)
from finiate.repositories.base import UnitOfWork
from finiate.repositories.sqlalchemy_repo import SqlAlchemyUnitOfWork
from finiate.schemas.agenda import (
    AgendaOut,
    HistoryEntry,
    HistoryReport,
    LogOut,
    LogWindow,
    SlotView,
    StatusCounts,
    StatusReport,
    TransitionOutcome,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_TITLE_LENGTH = 250
HISTORY_SORT_KEYS = ("initiate_at", "terminate_at", "title")

# A slot number (1-based, among ongoing agendas) or a stored agenda id
Target = int | uuid.UUID


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, StoreError) and exc.transient


class LifecycleService:
    """Service layer for the agenda state machine.

    The service owns the combined agenda + log write. On transactional backends
    both halves commit together; on non-transactional ones a failed log write
    after a successful agenda write is reported as PartialFailureError and
    never rolled back automatically.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        timeout_seconds: float = 10.0,
        retry_attempts: int = 2,
        default_put_off: str = "1d",
        status_max_amount: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize with a dependency-injected unit-of-work factory.

        Args:
            uow_factory: Returns a fresh UnitOfWork per command (not global state)
            timeout_seconds: Caller timeout for each unit of work
            retry_attempts: Total attempts on transient store errors (2 = one retry)
            default_put_off: Span used by put_off when no deadline or extension is given
            status_max_amount: Upper clamp for status()
            clock: Wall clock, injectable for deterministic tests
        """
        self.uow_factory = uow_factory
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, retry_attempts)
        self.default_put_off = parse_span(default_put_off)
        self.status_max_amount = status_max_amount
        self.clock = clock

    @classmethod
    def for_database(cls, database: Database, settings: Settings) -> "LifecycleService":
        """Build a service over a SQL database using configured timeouts and policies."""
        return cls(
            lambda: SqlAlchemyUnitOfWork(database.session_factory),
            timeout_seconds=settings.store_timeout_seconds,
            retry_attempts=settings.store_retry_attempts,
            default_put_off=settings.default_put_off,
            status_max_amount=settings.status_max_amount,
        )

    # --- Unit-of-work plumbing ---

    async def _run_once(self, operation: str, work: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        async def unit() -> T:
            async with self.uow_factory() as uow:
                result = await work(uow)
                await uow.commit()
                return result

        try:
            return await asyncio.wait_for(unit(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning("unit_of_work_timeout", operation=operation, timeout_seconds=self.timeout_seconds)
            raise StoreError(
                f"{operation}: timed out after {self.timeout_seconds}s", cause="timeout"
            ) from exc

    async def _run(self, operation: str, work: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        """Run `work` in one unit of work, retrying transient store errors up to retry_attempts times."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(0.2),
            reraise=True,
            before_sleep=lambda rs: logger.warning(
                "store_retrying",
                operation=operation,
                attempt=rs.attempt_number,
                error=str(rs.outcome.exception()),
            ),
        ):
            with attempt:
                result = await self._run_once(operation, work)
        return result

    async def _write_log(self, uow: UnitOfWork, agenda_id: uuid.UUID, log_type: LogType, content: str) -> uuid.UUID:
        """Write the log half of a transition whose agenda half already applied."""
        try:
            return await uow.logs.create_log(LogCreate(agenda_id=agenda_id, content=content, log_type=log_type))
        except StoreError as exc:
            if uow.transactional:
                raise
            logger.error(
                "partial_write_detected",
                agenda_id=str(agenda_id),
                log_type=log_type.value,
                error=str(exc),
            )
            raise PartialFailureError(
                succeeded="agenda write",
                failed="log write",
                agenda_id=str(agenda_id),
                cause=exc,
            ) from exc

    async def _outcome(
        self, uow: UnitOfWork, action: str, agenda_id: uuid.UUID, log_id: uuid.UUID
    ) -> TransitionOutcome:
        agenda = await uow.agendas.get_agenda_by_id(agenda_id)
        if agenda is None:
            raise NotFoundError(f"Agenda {agenda_id} vanished during {action}")
        logs = await uow.logs.get_logs_by_agenda_id(agenda_id)
        log = next(entry for entry in logs if entry.id == log_id)
        ongoing = await uow.agendas.get_agendas_by_status(AgendaStatus.ONGOING)
        return TransitionOutcome(
            action=action,
            agenda=AgendaOut.from_domain(agenda),
            log=LogOut.from_domain(log),
            slot=slot_of(ongoing, agenda_id),
        )

    async def _resolve(self, uow: UnitOfWork, target: Target) -> Agenda:
        """Resolve a slot number or agenda id to the agenda it addresses."""
        if isinstance(target, uuid.UUID):
            agenda = await uow.agendas.get_agenda_by_id(target)
            if agenda is None:
                raise NotFoundError(f"No agenda with id {target}")
            return agenda
        if isinstance(target, bool) or not isinstance(target, int):
            raise ValidationError(f"Target must be a slot number or agenda id, got {target!r}")
        ongoing = await uow.agendas.get_agendas_by_status(AgendaStatus.ONGOING)
        return resolve_slot(ongoing, target)

    @staticmethod
    def _check(agenda: Agenda, transition: Transition) -> AgendaStatus:
        result = validate_transition(agenda.status, transition)
        if not result.allowed:
            raise InvalidTransitionError(str(agenda.id), agenda.status.value, transition.value, result.reason)
        return result.new_status

    @staticmethod
    def _clean_title(title: str) -> str:
        cleaned = (title or "").strip()
        if not cleaned:
            raise ValidationError("Agenda title must not be empty")
        if len(cleaned) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Agenda title is longer than {MAX_TITLE_LENGTH} characters")
        return cleaned

    # --- Creating transitions ---

    async def add(self, title: str, terminate_at: str | datetime) -> TransitionOutcome:
        """Create an ongoing agenda with a deadline and its Activate log.

        Args:
            title: Agenda title (duplicates allowed)
            terminate_at: Deadline as datetime or deadline text (see timespec)

        Raises:
            ValidationError: Empty title or unparseable deadline
        """
        title = self._clean_title(title)
        deadline = coerce_deadline(terminate_at, self.clock())

        async def work(uow: UnitOfWork) -> TransitionOutcome:
            agenda_id = await uow.agendas.create_agenda(
                AgendaCreate(title=title, status=INITIAL_STATUS["add"], terminate_at=deadline)
            )
            log_id = await self._write_log(uow, agenda_id, LogType.ACTIVATE, "")
            return await self._outcome(uow, "add", agenda_id, log_id)

        outcome = await self._run("add", work)
        logger.info(
            "agenda_added",
            agenda_id=outcome.agenda.id,
            terminate_at=deadline.isoformat(),
            slot=outcome.slot,
        )
        return outcome

    async def shelve(self, title: str) -> TransitionOutcome:
        """Create a stored agenda without a deadline and its Activate log.

        Raises:
            ValidationError: Empty title
            DuplicateAgendaError: A stored agenda with this title already exists
        """
        title = self._clean_title(title)

        async def work(uow: UnitOfWork) -> TransitionOutcome:
            existing = await uow.agendas.get_agendas_by_title(title)
            if any(a.status == AgendaStatus.STORED for a in existing):
                raise DuplicateAgendaError(title)
            agenda_id = await uow.agendas.create_agenda(
                AgendaCreate(title=title, status=INITIAL_STATUS["shelve"], terminate_at=None)
            )
            log_id = await self._write_log(uow, agenda_id, LogType.ACTIVATE, "")
            return await self._outcome(uow, "shelve", agenda_id, log_id)

        outcome = await self._run("shelve", work)
        logger.info("agenda_shelved", agenda_id=outcome.agenda.id)
        return outcome

    # --- Transitions on existing agendas ---

    async def activate(
        self, target: str | uuid.UUID, terminate_at: str | datetime, content: str = ""
    ) -> TransitionOutcome:
        """Give a stored agenda a deadline, moving it to ongoing.

        Args:
            target: Agenda id, or the title of a stored agenda
            terminate_at: Deadline as datetime or deadline text
            content: Optional note carried by the Activate log

        Raises:
            ValidationError: Unparseable deadline, or the title matches several stored agendas
            NotFoundError: No such agenda / no stored agenda with that title
            InvalidTransitionError: Agenda is not stored
        """
        deadline = coerce_deadline(terminate_at, self.clock())

        async def work(uow: UnitOfWork) -> TransitionOutcome:
            if isinstance(target, uuid.UUID):
                agenda = await self._resolve(uow, target)
            else:
                title = self._clean_title(target)
                stored = [
                    a for a in await uow.agendas.get_agendas_by_title(title) if a.status == AgendaStatus.STORED
                ]
                if not stored:
                    raise NotFoundError(f"No stored agenda titled '{title}'")
                if len(stored) > 1:
                    raise ValidationError(f"Several stored agendas are titled '{title}'; activate by id")
                agenda = stored[0]

            new_status = self._check(agenda, Transition.ACTIVATE)
            await uow.agendas.update_agenda(agenda.id, AgendaUpdate(status=new_status, terminate_at=deadline))
            log_id = await self._write_log(uow, agenda.id, TRANSITION_LOG_TYPES[Transition.ACTIVATE], content)
            return await self._outcome(uow, "activate", agenda.id, log_id)

        outcome = await self._run("activate", work)
        logger.info(
            "agenda_activated",
            agenda_id=outcome.agenda.id,
            terminate_at=deadline.isoformat(),
            slot=outcome.slot,
        )
        return outcome

    def _postponed_deadline(
        self,
        current: datetime,
        until: str | datetime | None,
        extend_by: str | timedelta | None,
    ) -> datetime:
        if until is not None and extend_by is not None:
            raise ValidationError("Give either a new deadline or an extension, not both")
        if until is not None:
            new_deadline = coerce_deadline(until, self.clock())
            if new_deadline <= current:
                raise ValidationError(
                    f"New deadline {new_deadline.isoformat()} is not later than {current.isoformat()}"
                )
            return new_deadline
        if extend_by is None:
            span = self.default_put_off
        elif isinstance(extend_by, timedelta):
            if extend_by <= timedelta(0):
                raise ValidationError("Extension must be positive")
            span = extend_by
        else:
            span = parse_span(extend_by)
        return shift(current, span)

    async def put_off(
        self,
        target: Target = 1,
        content: str = "",
        until: str | datetime | None = None,
        extend_by: str | timedelta | None = None,
    ) -> TransitionOutcome:
        """Postpone an ongoing agenda's deadline and write one PutOff log.

        Args:
            target: Slot number (default 1) or agenda id
            content: Optional note carried by the PutOff log
            until: Explicit new deadline, must be later than the current one
            extend_by: Span added to the current deadline
            (neither given: the configured default span is added)

        Raises:
            ValidationError: Bad slot, deadline, or extension
            NotFoundError: Slot beyond the ongoing agendas, or unknown id
            InvalidTransitionError: Agenda is stored or terminated
        """

        async def work(uow: UnitOfWork) -> TransitionOutcome:
            agenda = await self._resolve(uow, target)
            new_status = self._check(agenda, Transition.PUT_OFF)
            new_deadline = self._postponed_deadline(agenda.terminate_at, until, extend_by)
            await uow.agendas.update_agenda(
                agenda.id, AgendaUpdate(status=new_status, terminate_at=new_deadline)
            )
            log_id = await self._write_log(uow, agenda.id, TRANSITION_LOG_TYPES[Transition.PUT_OFF], content or "")
            return await self._outcome(uow, "put_off", agenda.id, log_id)

        outcome = await self._run("put_off", work)
        logger.info(
            "agenda_put_off",
            agenda_id=outcome.agenda.id,
            terminate_at=outcome.agenda.terminate_at.isoformat() if outcome.agenda.terminate_at else None,
            slot=outcome.slot,
        )
        return outcome

    async def terminate(self, target: Target = 1, content: str = "") -> TransitionOutcome:
        """Close an ongoing agenda and write one Terminate log.

        Re-terminating is rejected before any write; the log table is left unchanged.

        Raises:
            ValidationError: Bad slot
            NotFoundError: Slot beyond the ongoing agendas, or unknown id
            InvalidTransitionError: Agenda is already terminated, or stored
        """

        async def work(uow: UnitOfWork) -> TransitionOutcome:
            agenda = await self._resolve(uow, target)
            new_status = self._check(agenda, Transition.TERMINATE)
            await uow.agendas.update_agenda(agenda.id, AgendaUpdate(status=new_status))
            log_id = await self._write_log(uow, agenda.id, TRANSITION_LOG_TYPES[Transition.TERMINATE], content or "")
            return await self._outcome(uow, "terminate", agenda.id, log_id)

        outcome = await self._run("terminate", work)
        logger.info("agenda_terminated", agenda_id=outcome.agenda.id)
        return outcome

    async def append_note(self, target: Target, content: str) -> TransitionOutcome:
        """Write a CommonLog against an agenda without touching its state.

        Raises:
            ValidationError: Empty content or bad slot
            NotFoundError: Slot beyond the ongoing agendas, or unknown id
        """
        if not content or not content.strip():
            raise ValidationError("Log content must not be empty")

        async def work(uow: UnitOfWork) -> TransitionOutcome:
            agenda = await self._resolve(uow, target)
            log_id = await uow.logs.create_log(
                LogCreate(agenda_id=agenda.id, content=content, log_type=LogType.COMMON_LOG)
            )
            return await self._outcome(uow, "note", agenda.id, log_id)

        outcome = await self._run("append_note", work)
        logger.info("note_appended", agenda_id=outcome.agenda.id, slot=outcome.slot)
        return outcome

    # --- Read-only views ---

    async def status(self, amount: int = 1) -> StatusReport:
        """Return the first `amount` ongoing agendas in slot order (clamped to 1..max)."""
        amount = max(1, min(amount, self.status_max_amount))
        now = self.clock()

        async def work(uow: UnitOfWork) -> StatusReport:
            ordered = order_slots(await uow.agendas.get_agendas_by_status(AgendaStatus.ONGOING))
            items = []
            for slot, agenda in enumerate(ordered[:amount], start=1):
                logs = await uow.logs.get_logs_by_agenda_id(agenda.id)
                items.append(
                    SlotView(
                        slot=slot,
                        agenda=AgendaOut.from_domain(agenda),
                        log_count=len(logs),
                        latest_log=LogOut.from_domain(logs[-1]) if logs else None,
                        overdue=agenda.is_overdue(now),
                    )
                )
            return StatusReport(requested=amount, ongoing_total=len(ordered), items=items)

        return await self._run("status", work)

    async def history(
        self,
        statuses: list[AgendaStatus] | None = None,
        sort: str = "initiate_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> HistoryReport:
        """Return agendas (default: ongoing and terminated) with their full log trail.

        Raises:
            ValidationError: Unknown sort key or non-positive limit
        """
        if sort not in HISTORY_SORT_KEYS:
            raise ValidationError(f"Unknown sort key {sort!r}; use one of {', '.join(HISTORY_SORT_KEYS)}")
        if limit is not None and limit < 1:
            raise ValidationError("Limit must be 1 or greater")
        wanted = list(dict.fromkeys(statuses or [AgendaStatus.ONGOING, AgendaStatus.TERMINATED]))

        def sort_key(agenda: Agenda) -> tuple:
            if sort == "title":
                return (agenda.title.lower(), agenda.initiate_at)
            if sort == "terminate_at":
                # Stored agendas have no deadline; they sort after every dated one
                missing = agenda.terminate_at is None
                return (missing != descending, agenda.terminate_at or agenda.initiate_at, agenda.initiate_at)
            return (agenda.initiate_at, str(agenda.id))

        async def work(uow: UnitOfWork) -> HistoryReport:
            agendas: list[Agenda] = []
            for status in wanted:
                agendas.extend(await uow.agendas.get_agendas_by_status(status))
            agendas.sort(key=sort_key, reverse=descending)
            total = len(agendas)
            if limit is not None:
                agendas = agendas[:limit]

            items = []
            for agenda in agendas:
                logs = await uow.logs.get_logs_by_agenda_id(agenda.id)
                items.append(
                    HistoryEntry(
                        agenda=AgendaOut.from_domain(agenda),
                        logs=[LogOut.from_domain(log) for log in logs],
                    )
                )
            return HistoryReport(sort=sort, descending=descending, items=items, total=total)

        return await self._run("history", work)

    async def logs_between(self, start: datetime, end: datetime) -> LogWindow:
        """Return every log with start <= create_at <= end, oldest first.

        Raises:
            ValidationError: start is after end
        """
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise ValidationError("Window start is after its end")

        async def work(uow: UnitOfWork) -> LogWindow:
            logs = await uow.logs.get_logs_by_time_range(start, end)
            titles: dict[str, str] = {}
            for agenda_id in dict.fromkeys(log.agenda_id for log in logs if log.agenda_id is not None):
                agenda = await uow.agendas.get_agenda_by_id(agenda_id)
                titles[str(agenda_id)] = agenda.title if agenda else "(deleted)"
            return LogWindow(
                start=start,
                end=end,
                items=[LogOut.from_domain(log) for log in logs],
                titles=titles,
            )

        return await self._run("logs_between", work)

    async def overview(self) -> StatusCounts:
        """Count agendas per status."""

        async def work(uow: UnitOfWork) -> StatusCounts:
            return StatusCounts(
                stored=await uow.agendas.count_agendas_by_status(AgendaStatus.STORED),
                ongoing=await uow.agendas.count_agendas_by_status(AgendaStatus.ONGOING),
                terminated=await uow.agendas.count_agendas_by_status(AgendaStatus.TERMINATED),
                total=await uow.agendas.count_agendas_by_status(None),
            )

        return await self._run("overview", work)
