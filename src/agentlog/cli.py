"""
agentlog CLI - command-line interface for agentlog.

Batch-imports the agent tool's session logs into the store, exports the
observed log schema, streams live agent runs and prints quick statistics.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from agentlog.logging_config import setup_logging

app = typer.Typer(
    name="agentlog",
    help="agentlog - Session log ingestion and live streaming for coding agents",
    no_args_is_help=True,
)

console = Console()


def _init_logging(context: str) -> None:
    # Fall back to console logging if the log directory is not writable
    try:
        setup_logging(context=context)
    except PermissionError:
        logging.basicConfig(level=logging.INFO)


def _resolve_path(path: Optional[str]) -> Path:
    from agentlog.config import settings

    log_path = Path(path).expanduser() if path else settings.projects_path
    if not log_path.exists():
        console.print(f"[bold red]Error:[/bold red] Path not found: {log_path}")
        raise typer.Exit(1)
    return log_path


def _open_store() -> None:
    from agentlog.db.connection import check_connection, init_db

    if not check_connection():
        console.print("[bold red]Error:[/bold red] Cannot connect to the database")
        raise typer.Exit(1)
    init_db()


def _fmt_time(value) -> str:
    return value.isoformat(sep=" ", timespec="seconds") if value else "N/A"


@app.command()
def sync(
    path: Optional[str] = typer.Argument(
        None, help="Log file or projects directory (defaults to the configured projects dir)"
    ),
    dry_run: bool = typer.Option(False, help="Parse without storing to database"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="List every issue found"),
) -> None:
    """
    Import session logs into the database.

    Files whose content has not changed since the last import are skipped;
    changed files have their events fully replaced.
    """
    from agentlog.db.connection import get_session
    from agentlog.pipeline.sources import discover_sources
    from agentlog.pipeline.sync import BatchSynchronizer, ImportOutcome, ImportStatus

    _init_logging("cli")

    log_path = _resolve_path(path)
    sources = discover_sources(log_path)
    if not sources:
        console.print("[yellow]No .jsonl files found[/yellow]")
        raise typer.Exit(0)

    console.print(f"[bold blue]Syncing sessions from:[/bold blue] {log_path}")
    console.print(f"  Dry run: {dry_run}")
    console.print(f"Found {len(sources)} file(s)\n")

    if not dry_run:
        _open_store()

    colors = {
        ImportStatus.CREATED: "green",
        ImportStatus.UPDATED: "green",
        ImportStatus.SKIPPED: "yellow",
        ImportStatus.FAILED: "red",
    }

    def show_outcome(outcome: ImportOutcome) -> None:
        color = colors[outcome.status]
        detail = f" ({outcome.reason})" if outcome.reason else ""
        console.print(
            f"  [{color}]{outcome.status.value}[/{color}] {outcome.session_id}"
            f" events={outcome.events_parsed}{detail}",
            highlight=False,
        )

    synchronizer = BatchSynchronizer(session_factory=get_session)
    report = synchronizer.sync_all(sources, dry_run=dry_run, on_outcome=show_outcome)

    issues = report.issues
    if issues and verbose:
        console.print()
        console.print("[bold]Issues:[/bold]")
        for issue in issues:
            console.print(f"  [yellow]{issue.kind.value}[/yellow] {issue}", highlight=False)

    console.print()
    console.print("[bold]Summary:[/bold]")
    console.print(f"  Created: {report.sessions_created}")
    console.print(f"  Updated: {report.sessions_updated}")
    console.print(f"  Skipped: {report.sessions_skipped}")
    console.print(f"  Failed: {report.sessions_failed}")
    console.print(f"  Events stored: {report.events_created}")
    console.print(f"  Tool uses stored: {report.tool_uses_created}")
    console.print(f"  Issues: {len(issues)}")

    if report.has_failures:
        raise typer.Exit(1)


@app.command()
def schema(
    path: Optional[str] = typer.Argument(
        None, help="Log file or projects directory (defaults to the configured projects dir)"
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the schema JSON to this file"
    ),
    sample: int = typer.Option(0, help="Only scan the first N files (0 = all)"),
) -> None:
    """
    Discover the event schema used in session logs.

    Scans the logs without touching the database and reports event types,
    fields, content part types, tools and models seen.
    """
    import json

    from agentlog.parsers import SchemaDiscovery
    from agentlog.pipeline.sources import discover_sources
    from agentlog.pipeline.sync import BatchSynchronizer

    _init_logging("cli")

    log_path = _resolve_path(path)
    sources = discover_sources(log_path)
    if sample > 0:
        sources = sources[:sample]
    if not sources:
        console.print("[yellow]No .jsonl files found[/yellow]")
        raise typer.Exit(0)

    console.print(f"Scanning {len(sources)} file(s)...")

    discovery = SchemaDiscovery()
    synchronizer = BatchSynchronizer(
        session_factory=lambda: None,  # never called in dry-run mode
        discovery=discovery,
    )
    synchronizer.sync_all(sources, dry_run=True)

    result = discovery.to_dict()
    found = result["schema"]
    console.print()
    console.print("[bold]Schema:[/bold]")
    console.print(f"  Event types: {', '.join(found['event_types']) or 'none'}")
    console.print(f"  Content types: {', '.join(found['message_content_types']) or 'none'}")
    console.print(f"  Tools: {len(found['tool_names'])}")
    console.print(f"  Models: {', '.join(found['models']) or 'none'}")
    console.print(f"  Stop reasons: {', '.join(found['stop_reasons']) or 'none'}")
    console.print()
    console.print("[bold]Statistics:[/bold]")
    console.print(f"  Files: {discovery.total_files}")
    console.print(f"  Events: {discovery.total_events}")
    console.print(f"  Errors: {discovery.error_count}")

    if output:
        written = discovery.export(Path(output).expanduser())
        console.print(f"\n[green]✓ Schema written to {written}[/green]")
    else:
        console.print()
        console.print_json(json.dumps(result))

    if discovery.error_count:
        raise typer.Exit(1)


@app.command()
def run(
    prompt: str = typer.Argument(..., help="Prompt to send to the agent"),
    new: bool = typer.Option(False, "--new", help="Start a new session instead of continuing"),
) -> None:
    """
    Run the agent on a prompt and stream its transcript.

    Continues the most recently recorded session unless --new is given.
    """
    from agentlog.exceptions import ProcessSpawnError
    from agentlog.live import LiveSessionAdapter

    _init_logging("live")

    adapter = LiveSessionAdapter()
    if new:
        adapter.reset_session()

    session_id = adapter.current_session_id
    if session_id:
        console.print(f"[cyan]Continuing session {session_id}[/cyan]", highlight=False)
    else:
        console.print("[cyan]Starting new session[/cyan]")

    try:
        lines = adapter.submit(prompt)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except ProcessSpawnError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    try:
        for line in lines:
            console.print(line, highlight=False)
    except KeyboardInterrupt:
        adapter.cancel()
        lines.close()
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(130)

    returncode = adapter.context.last_returncode
    if returncode:
        raise typer.Exit(1)


@app.command()
def session(
    switch: Optional[str] = typer.Option(
        None, "--switch", help="Continue this session on the next run"
    ),
    history: bool = typer.Option(False, "--history", help="List every recorded session id"),
) -> None:
    """
    Show or change the session the next run continues.
    """
    from agentlog.config import settings
    from agentlog.live import SessionIdStore

    store = SessionIdStore(settings.sessions_path)

    if switch is not None:
        if not switch.strip():
            console.print("[bold red]Error:[/bold red] session id required")
            raise typer.Exit(1)
        store.save(switch.strip())
        console.print(f"[green]✓ Switched to session {switch.strip()}[/green]", highlight=False)
        return

    if history:
        ids = store.load_all()
        if not ids:
            console.print("[yellow]No sessions recorded[/yellow]")
        for session_id in ids:
            console.print(session_id, highlight=False)
        return

    current = store.load_last()
    if current:
        console.print(f"Current session: {current}", highlight=False)
    else:
        console.print("[yellow]No current session[/yellow]")


@app.command()
def stats(
    limit: int = typer.Option(10, help="Rows per table"),
) -> None:
    """
    Quick statistics over the imported sessions.
    """
    from agentlog.db.connection import db_session
    from agentlog.db.repositories import (
        EventRepository,
        SessionRepository,
        ToolUseRepository,
    )

    _init_logging("cli")
    _open_store()

    with db_session() as db:
        session_repo = SessionRepository(db)
        tool_repo = ToolUseRepository(db)

        console.print("[bold]Sessions database - quick stats[/bold]\n")
        console.print(f"  Sessions: {session_repo.count()}")
        console.print(f"  Events: {EventRepository(db).count()}")
        console.print(f"  Tool uses: {tool_repo.count()}\n")

        projects = Table(title="Projects")
        projects.add_column("Project")
        projects.add_column("Sessions", justify="right")
        projects.add_column("Last active")
        for project_path, count, last_active in session_repo.project_summary(limit=limit):
            projects.add_row(project_path or "N/A", str(count), _fmt_time(last_active))
        console.print(projects)

        recent = Table(title="Recent sessions")
        recent.add_column("Session")
        recent.add_column("Project")
        recent.add_column("Agent")
        recent.add_column("Events", justify="right")
        recent.add_column("Last active")
        for record in session_repo.get_recent(limit=limit):
            recent.add_row(
                record.session_id,
                record.project_path or "N/A",
                "yes" if record.is_agent else "no",
                str(record.event_count),
                _fmt_time(record.last_active),
            )
        console.print(recent)

        tools = Table(title="Most used tools")
        tools.add_column("Tool")
        tools.add_column("Uses", justify="right")
        for tool_name, count in tool_repo.top_tools(limit=limit):
            tools.add_row(tool_name, str(count))
        console.print(tools)

        models = Table(title="Models used")
        models.add_column("Model")
        models.add_column("Sessions", justify="right")
        for model, count in session_repo.model_summary():
            models.add_row(model, str(count))
        console.print(models)


@app.command()
def show(
    session_id: str = typer.Argument(..., help="Session id (log file stem)"),
    events: int = typer.Option(10, help="Number of recent events to list"),
) -> None:
    """
    Show one imported session: event types, tools and timeline.
    """
    import json

    from agentlog.db.connection import db_session
    from agentlog.db.repositories import (
        EventRepository,
        SessionRepository,
        ToolUseRepository,
    )

    _init_logging("cli")
    _open_store()

    with db_session() as db:
        record = SessionRepository(db).get_by_session_id(session_id)
        if record is None:
            console.print(
                f"[bold red]Error:[/bold red] Session not found: {session_id}", highlight=False
            )
            raise typer.Exit(1)

        event_repo = EventRepository(db)

        console.print(f"[bold]Session {record.session_id}[/bold]", highlight=False)
        console.print(f"  Project: {record.project_path or 'N/A'}")
        console.print(f"  Agent: {record.agent_id or 'no'}")
        console.print(f"  Model: {record.model or 'N/A'}")
        console.print(f"  Events: {record.event_count}")
        console.print(f"  Source: {record.source_path or 'N/A'}")
        console.print(f"  Imported: {_fmt_time(record.last_imported_at)}")
        console.print()

        types = Table(title="Event types")
        types.add_column("Type")
        types.add_column("Count", justify="right")
        for type_name, count in event_repo.type_counts(session_id):
            types.add_row(type_name, str(count))
        console.print(types)

        tools = Table(title="Tools used")
        tools.add_column("Tool")
        tools.add_column("Uses", justify="right")
        for tool_name, count in ToolUseRepository(db).top_tools(limit=50, session_id=session_id):
            tools.add_row(tool_name, str(count))
        console.print(tools)

        recent = Table(title="Recent events")
        recent.add_column("Type")
        recent.add_column("Timestamp")
        recent.add_column("Preview")
        for event in event_repo.get_by_session(session_id, limit=events):
            payload = event.message if event.message is not None else event.raw_data
            recent.add_row(
                event.type,
                _fmt_time(event.timestamp),
                json.dumps(payload, default=str)[:100],
            )
        console.print(recent)

        start, end = event_repo.timeline(session_id)
        console.print("[bold]Timeline:[/bold]")
        console.print(f"  Start: {_fmt_time(start)}")
        console.print(f"  End: {_fmt_time(end)}")
        if start and end:
            console.print(f"  Duration: {end - start}")


if __name__ == "__main__":
    app()
