"""CLI entrypoint for finiate."""

import asyncio
import sys
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

import click
import structlog
from rich.console import Console

from finiate import __version__
from finiate.cli import render
from finiate.core.clock import utc_now
from finiate.core.config import Settings, get_settings
from finiate.core.exceptions import DataCorruptionError, FiniateError, ValidationError
from finiate.core.logging import configure_structlog
from finiate.db.base import Database
from finiate.domain.agenda import AgendaStatus
from finiate.domain.timespec import parse_window_bound
from finiate.repositories.sqlalchemy_repo import translate_store_errors
from finiate.services.lifecycle import HISTORY_SORT_KEYS, LifecycleService

logger = structlog.get_logger(__name__)

T = TypeVar("T")

NO_INPUT_MESSAGE = "No command provided and log content is empty. Please provide a command or log content."
EXIT_DATA_CORRUPTION = 3


class AgendaGroup(click.Group):
    """Command group that routes bare text (no known subcommand) to `note`."""

    def resolve_command(self, ctx: click.Context, args: list[str]):
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            return "note", self.get_command(ctx, "note"), args
        return super().resolve_command(ctx, args)


def run_service(ctx: click.Context, operation: Callable[[LifecycleService], Awaitable[T]]) -> T:
    """Run one service operation in a fresh event loop and map errors to exit codes.

    A service placed in ctx.obj["service"] is used as-is; otherwise one is built
    over the configured database and disposed afterwards.
    """
    settings: Settings = ctx.obj["settings"]

    async def main() -> T:
        service = ctx.obj.get("service")
        if service is not None:
            return await operation(service)

        database = Database(settings.database_url, echo=settings.debug)
        try:
            with translate_store_errors("init"):
                await database.init()
            return await operation(LifecycleService.for_database(database, settings))
        finally:
            await database.close()

    try:
        return asyncio.run(main())
    except DataCorruptionError as exc:
        logger.critical("data_corruption", error=str(exc))
        click.echo(f"Fatal: {exc}", err=True)
        sys.exit(EXIT_DATA_CORRUPTION)
    except FiniateError as exc:
        raise click.ClickException(str(exc)) from exc


def window_bound(ctx: click.Context, param: click.Parameter, value: str | None) -> datetime | None:
    """Parse a --since/--until value; bare dates span the whole local day."""
    if value is None:
        return None
    try:
        return parse_window_bound(value, utc_now(), end=param.name == "until")
    except ValidationError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc


def echo_json(model) -> None:
    click.echo(model.model_dump_json(indent=2))


@click.group(cls=AgendaGroup, invoke_without_command=True)
@click.version_option(__version__, prog_name="finiate")
@click.option(
    "--slot",
    "-s",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Agenda slot a bare log note is saved to",
)
@click.option(
    "--database-url",
    type=str,
    default=None,
    help="SQLAlchemy URL of the agenda store (defaults to FINIATE_DATABASE_URL)",
)
@click.option("--json-logs", is_flag=True, help="Emit structured logs as JSON on stderr")
@click.pass_context
def cli(ctx: click.Context, slot: int, database_url: str | None, json_logs: bool) -> None:
    """finiate - track agendas and the log of what happened to them.

    Ongoing agendas are addressed by slot: slot 1 is the one whose deadline is
    closest. Slots are recomputed after every command.

    Bare text is saved as a note on the agenda in --slot (default 1).
    """
    ctx.ensure_object(dict)
    settings: Settings = ctx.obj.get("settings") or get_settings()
    overrides: dict = {}
    if database_url:
        overrides["database_url"] = database_url
    if json_logs:
        overrides["json_logs"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)
    ctx.obj["settings"] = settings
    ctx.obj["slot"] = slot

    configure_structlog(
        log_level="DEBUG" if settings.debug else settings.log_level,
        json_logs=settings.json_logs,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command_id=str(uuid.uuid4()))

    if ctx.invoked_subcommand is None:
        raise click.UsageError(NO_INPUT_MESSAGE, ctx=ctx)


@cli.command()
@click.argument("agenda_title")
@click.option(
    "--terminate-at",
    "-t",
    required=True,
    metavar="TIME",
    help="Deadline: ISO date/time, today, tomorrow, or a span like +2d",
)
@click.pass_context
def add(ctx: click.Context, agenda_title: str, terminate_at: str) -> None:
    """Add an ongoing agenda and leave an activate log."""
    result = run_service(ctx, lambda service: service.add(agenda_title, terminate_at))
    render.outcome(Console(), result)


@cli.command()
@click.argument("agenda_title")
@click.pass_context
def shelve(ctx: click.Context, agenda_title: str) -> None:
    """Add a pending agenda with no deadline yet.

    There is at most one pending agenda per title.
    """
    result = run_service(ctx, lambda service: service.shelve(agenda_title))
    render.outcome(Console(), result)


@cli.command()
@click.argument("agenda")
@click.argument("content", required=False, default="")
@click.option("--terminate-at", "-t", required=True, metavar="TIME", help="Deadline for the agenda")
@click.pass_context
def activate(ctx: click.Context, agenda: str, content: str, terminate_at: str) -> None:
    """Give a shelved agenda (by title or id) a deadline and start it."""
    try:
        target: str | uuid.UUID = uuid.UUID(agenda)
    except ValueError:
        target = agenda
    result = run_service(ctx, lambda service: service.activate(target, terminate_at, content))
    render.outcome(Console(), result)


@cli.command("put-off")
@click.argument("content", required=False, default="")
@click.option("--slot", "-s", type=click.IntRange(min=1), default=1, show_default=True, help="Agenda slot")
@click.option("--id", "agenda_id", type=click.UUID, default=None, help="Agenda id (overrides --slot)")
@click.option("--until", "-u", metavar="TIME", default=None, help="New deadline, later than the current one")
@click.option("--by", "-b", "extend_by", metavar="SPAN", default=None, help="Extension such as 1d or 2h30m")
@click.pass_context
def put_off(
    ctx: click.Context,
    content: str,
    slot: int,
    agenda_id: uuid.UUID | None,
    until: str | None,
    extend_by: str | None,
) -> None:
    """Put off the agenda in a slot and leave a put-off log.

    Without --until or --by the deadline moves by the configured default (1d).
    """
    target = agenda_id or slot
    result = run_service(
        ctx, lambda service: service.put_off(target, content, until=until, extend_by=extend_by)
    )
    render.outcome(Console(), result)


@cli.command()
@click.argument("content", required=False, default="")
@click.option("--slot", "-s", type=click.IntRange(min=1), default=1, show_default=True, help="Agenda slot")
@click.option("--id", "agenda_id", type=click.UUID, default=None, help="Agenda id (overrides --slot)")
@click.pass_context
def terminate(ctx: click.Context, content: str, slot: int, agenda_id: uuid.UUID | None) -> None:
    """Terminate the agenda in a slot and leave a terminate log."""
    target = agenda_id or slot
    result = run_service(ctx, lambda service: service.terminate(target, content))
    render.outcome(Console(), result)


@cli.command()
@click.argument("content", nargs=-1, required=True)
@click.option("--slot", "-s", type=click.IntRange(min=1), default=None, help="Agenda slot (default: group --slot)")
@click.option("--id", "agenda_id", type=click.UUID, default=None, help="Agenda id (overrides --slot)")
@click.pass_context
def note(ctx: click.Context, content: tuple[str, ...], slot: int | None, agenda_id: uuid.UUID | None) -> None:
    """Save a free-form log on an agenda without changing it."""
    target = agenda_id or slot or ctx.obj["slot"]
    text = " ".join(content)
    result = run_service(ctx, lambda service: service.append_note(target, text))
    render.outcome(Console(), result)


@cli.command()
@click.option(
    "--agenda-amount",
    "-a",
    type=click.IntRange(1, 5),
    default=1,
    show_default=True,
    help="How many agendas to show, most urgent first",
)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def status(ctx: click.Context, agenda_amount: int, output_json: bool) -> None:
    """Show the most urgent ongoing agendas."""

    async def operation(service: LifecycleService):
        return await service.status(agenda_amount), await service.overview()

    report, counts = run_service(ctx, operation)
    if output_json:
        echo_json(report)
        return
    render.status(Console(), report, counts)


@cli.command()
@click.option(
    "--status",
    "statuses",
    type=click.Choice([s.value for s in AgendaStatus]),
    multiple=True,
    help="Only agendas in this status (repeatable; default: ongoing and terminated)",
)
@click.option(
    "--sort",
    type=click.Choice(list(HISTORY_SORT_KEYS)),
    default="initiate_at",
    show_default=True,
    help="Sort key",
)
@click.option("--ascending", is_flag=True, help="Oldest / earliest first")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Show at most this many agendas")
@click.option(
    "--since",
    metavar="TIME",
    default=None,
    callback=window_bound,
    help="Show logs from this time (a bare date counts from its start)",
)
@click.option(
    "--until",
    metavar="TIME",
    default=None,
    callback=window_bound,
    help="Show logs up to this time (a bare date includes the whole day)",
)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def history(
    ctx: click.Context,
    statuses: tuple[str, ...],
    sort: str,
    ascending: bool,
    limit: int | None,
    since: datetime | None,
    until: datetime | None,
    output_json: bool,
) -> None:
    """Show agendas with their logs, or the logs inside a time window.

    With --since and/or --until the view switches to a log window (inclusive);
    a missing bound defaults to the epoch or now. A bare date covers the whole
    local day, so --until 2026-10-19 includes that day.
    """
    if since is not None or until is not None:
        start = since or datetime(1970, 1, 1, tzinfo=UTC)
        end = until or utc_now()
        window = run_service(ctx, lambda service: service.logs_between(start, end))
        if output_json:
            echo_json(window)
            return
        render.log_window(Console(), window)
        return

    report = run_service(
        ctx,
        lambda service: service.history(
            statuses=[AgendaStatus(s) for s in statuses] or None,
            sort=sort,
            descending=not ascending,
            limit=limit,
        ),
    )
    if output_json:
        echo_json(report)
        return
    render.history(Console(), report)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
