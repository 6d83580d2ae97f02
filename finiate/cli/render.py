"""Rich rendering of service results for the terminal."""

from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from finiate.schemas.agenda import (
    HistoryReport,
    LogWindow,
    StatusCounts,
    StatusReport,
    TransitionOutcome,
)

LOG_TYPE_LABELS = {
    "activate": "activate",
    "put_off": "put off",
    "terminate": "terminate",
    "common_log": "note",
}


def fmt_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def outcome(console: Console, result: TransitionOutcome) -> None:
    """One-line confirmation for a lifecycle command."""
    agenda = result.agenda
    slot = f" (slot {result.slot})" if result.slot is not None else ""
    if result.action == "add":
        console.print(f"Added [bold]{escape(agenda.title)}[/bold]{slot}, terminate at {fmt_time(agenda.terminate_at)}")
    elif result.action == "shelve":
        console.print(f"Shelved [bold]{escape(agenda.title)}[/bold]")
    elif result.action == "activate":
        console.print(f"Activated [bold]{escape(agenda.title)}[/bold]{slot}, terminate at {fmt_time(agenda.terminate_at)}")
    elif result.action == "put_off":
        console.print(f"Put off [bold]{escape(agenda.title)}[/bold] to {fmt_time(agenda.terminate_at)}{slot}")
    elif result.action == "terminate":
        console.print(f"Terminated [bold]{escape(agenda.title)}[/bold]")
    else:
        console.print(f"Saved in agenda [bold]{escape(agenda.title)}[/bold]{slot}")

    if result.log.content:
        console.print(f"  {LOG_TYPE_LABELS[result.log.log_type]}: {escape(result.log.content)}", highlight=False)


def status(console: Console, report: StatusReport, counts: StatusCounts) -> None:
    if not report.items:
        console.print("No ongoing agendas.", style="yellow")
    else:
        table = Table(title=f"Top {len(report.items)} of {report.ongoing_total} ongoing")
        table.add_column("Slot", justify="right")
        table.add_column("Agenda")
        table.add_column("Terminate at")
        table.add_column("Logs", justify="right")
        table.add_column("Latest log")
        for item in report.items:
            latest = ""
            if item.latest_log is not None:
                latest = LOG_TYPE_LABELS[item.latest_log.log_type]
                if item.latest_log.content:
                    latest += f": {escape(item.latest_log.content)}"
            deadline = fmt_time(item.agenda.terminate_at)
            if item.overdue:
                deadline = f"[red]{deadline} (overdue)[/red]"
            table.add_row(str(item.slot), escape(item.agenda.title), deadline, str(item.log_count), latest)
        console.print(table)

    console.print(
        f"{counts.ongoing} ongoing, {counts.stored} stored, {counts.terminated} terminated",
        style="dim",
    )


def history(console: Console, report: HistoryReport) -> None:
    if not report.items:
        console.print("No agendas recorded.", style="yellow")
        return

    for entry in report.items:
        agenda = entry.agenda
        console.print(
            f"[bold]{escape(agenda.title)}[/bold] {escape(f'[{agenda.status}]')} "
            f"initiated {fmt_time(agenda.initiate_at)}, terminate at {fmt_time(agenda.terminate_at)}"
        )
        for log in entry.logs:
            text = f"  {fmt_time(log.create_at)}  {LOG_TYPE_LABELS[log.log_type]}"
            if log.content:
                text += f": {escape(log.content)}"
            console.print(text, highlight=False)

    if report.total > len(report.items):
        console.print(f"... {report.total - len(report.items)} more", style="dim")


def log_window(console: Console, window: LogWindow) -> None:
    if not window.items:
        console.print(
            f"No logs between {fmt_time(window.start)} and {fmt_time(window.end)}.", style="yellow"
        )
        return

    table = Table(title=f"Logs {fmt_time(window.start)} .. {fmt_time(window.end)}")
    table.add_column("Time")
    table.add_column("Agenda")
    table.add_column("Type")
    table.add_column("Content")
    for log in window.items:
        table.add_row(
            fmt_time(log.create_at),
            escape(window.titles.get(log.agenda_id or "", "(deleted)")),
            LOG_TYPE_LABELS[log.log_type],
            escape(log.content),
        )
    console.print(table)
