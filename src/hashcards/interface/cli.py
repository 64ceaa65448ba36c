"""hashcards CLI: drill sessions and collection maintenance commands."""

import asyncio
import contextlib
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

import typer
import uvicorn

from hashcards.application.browser import open_browser_when_ready
from hashcards.application.collection import Collection, resolve_directory
from hashcards.application.config import DrillOptions, load_config, resolve_drill_options
from hashcards.application.export import export_collection
from hashcards.application.maintenance import check_collection, delete_orphans, list_orphans
from hashcards.application.session import DrillSession
from hashcards.application.session_builder import SessionOptions, build_session
from hashcards.application.stats import StatsService
from hashcards.domain.errors import HashcardsError, ServerUnreachable
from hashcards.domain.models import AnswerControls
from hashcards.infrastructure.store import open_store

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="hashcards: plain-text spaced repetition.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

orphans_app = typer.Typer(
    help="Review records whose card no longer exists.", no_args_is_help=True
)
app.add_typer(orphans_app, name="orphans")

logger = logging.getLogger(__name__)

DirectoryArg = Annotated[
    Path | None,
    typer.Argument(help="Collection directory. Defaults to the current directory."),
]

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def _parse_bool(value: str | None) -> bool | None:
    """Parse an explicit boolean option value."""
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise typer.BadParameter(f"expected true or false, got {value!r}")


@contextlib.contextmanager
def _fatal_errors():
    """Report hashcards errors on stderr and exit with status 1."""
    try:
        yield
    except HashcardsError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for hashcards."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stderr,
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# Drill
# ---------------------------------------------------------------------------


@app.command()
def drill(
    ctx: typer.Context,
    directory: DirectoryArg = None,
    card_limit: Annotated[
        int | None, typer.Option(min=0, help="Maximum number of cards to answer.")
    ] = None,
    new_card_limit: Annotated[
        int | None, typer.Option(min=0, help="Maximum number of new cards in the session.")
    ] = None,
    host: Annotated[str | None, typer.Option(help="Address to bind the server to.")] = None,
    port: Annotated[
        int | None, typer.Option(min=0, max=65535, help="Port to bind the server to.")
    ] = None,
    from_deck: Annotated[
        str | None, typer.Option(help="Only drill this deck and its subdecks.")
    ] = None,
    open_browser: Annotated[
        str | None, typer.Option(metavar="BOOL", help="Open the drill page in a browser.")
    ] = None,
    bury_siblings: Annotated[
        str | None,
        typer.Option(metavar="BOOL", help="Skip the other cards of a note once one is answered."),
    ] = None,
    answer_controls: Annotated[
        AnswerControls | None,
        typer.Option(case_sensitive=False, help="Grades offered: full or binary."),
    ] = None,
    shuffle: Annotated[
        str | None, typer.Option(metavar="BOOL", help="Shuffle new cards.")
    ] = None,
):
    """[bold green]Drill[/bold green] the cards that are due in a collection."""
    with _fatal_errors():
        root = resolve_directory(directory)
        options = resolve_drill_options(
            load_config(root),
            {
                "card_limit": card_limit,
                "new_card_limit": new_card_limit,
                "host": host,
                "port": port,
                "deck_filter": from_deck,
                "open_browser": _parse_bool(open_browser),
                "bury_siblings": _parse_bool(bury_siblings),
                "answer_controls": answer_controls,
                "shuffle": _parse_bool(shuffle),
            },
        )
        session = _start_session(root, options)

    verbose = ctx.obj.get("verbose", 0)
    if session.is_empty:
        typer.secho("No cards are due.", fg="yellow")
    else:
        typer.echo(f"{len(session.queue)} cards to drill.")
    typer.echo(f"Serving on http://{options.host}:{options.port}/ (Ctrl+C to stop)")

    try:
        code = asyncio.run(_serve(session, options, verbose))
    except KeyboardInterrupt:
        code = 0
    finally:
        session.close()
    if code:
        raise typer.Exit(code)


def _start_session(root: Path, options: DrillOptions) -> DrillSession:
    collection = Collection.load(root)
    store = open_store(root)
    try:
        session_options = SessionOptions(
            now=datetime.now(timezone.utc),
            card_limit=options.card_limit,
            new_card_limit=options.new_card_limit,
            deck_filter=options.deck_filter,
            shuffle=options.shuffle,
            bury_siblings=options.bury_siblings,
        )
        plan = build_session(collection, dict(store.iter_all()), session_options)
    except HashcardsError:
        store.close()
        raise
    return DrillSession(
        collection=collection,
        store=store,
        plan=plan,
        options=session_options,
        controls=options.answer_controls,
    )


async def _serve(session: DrillSession, options: DrillOptions, verbose: int = 0) -> int:
    """Run the drill server until shutdown. Returns the exit code."""
    from hashcards.server import create_app

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(session),
            host=options.host,
            port=options.port,
            log_level="info" if verbose else "warning",
        )
    )
    failed = False

    async def launch_browser():
        nonlocal failed
        try:
            await open_browser_when_ready(options.host, options.port)
        except ServerUnreachable as e:
            typer.secho(f"Error: {e}", fg="red", err=True)
            failed = True
            server.should_exit = True

    browser = asyncio.create_task(launch_browser()) if options.open_browser else None
    try:
        await server.serve()
    finally:
        if browser is not None and not browser.done():
            browser.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await browser
    return 1 if failed else 0


# ---------------------------------------------------------------------------
# Maintenance commands
# ---------------------------------------------------------------------------


@app.command()
def check(
    directory: DirectoryArg = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Check the collection: parse errors, duplicate cards, invalid records."""
    try:
        root = resolve_directory(directory)
        collection = Collection.load(root)
        with open_store(root) as store:
            report = check_collection(collection, store)
    except HashcardsError as e:
        if json_output:
            typer.echo(json.dumps({"ok": False, "error": str(e)}, indent=2))
        else:
            typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        typer.echo(f"Cards: {report.cards}")

        if report.duplicates:
            typer.secho(f"\nDuplicate cards: {len(report.duplicates)}", fg="red")
            for first, dup in report.duplicates:
                typer.echo(f"  {dup.source}:{dup.line}  (same as {first.source}:{first.line})")
        else:
            typer.secho("Duplicates: 0", fg="green")

        if report.invalid_records:
            typer.secho(f"\nInvalid review records: {len(report.invalid_records)}", fg="red")
            for fp, reason in report.invalid_records:
                typer.echo(f"  {fp[:12]}  {reason}")
        else:
            typer.secho("Invalid records: 0", fg="green")

        if report.orphans:
            typer.secho(
                f"Orphan records: {len(report.orphans)} (see 'hashcards orphans list')",
                fg="yellow",
            )

    if not report.ok:
        raise typer.Exit(1)


@app.command()
def stats(directory: DirectoryArg = None):
    """Print a JSON summary of the collection's review state."""
    with _fatal_errors():
        root = resolve_directory(directory)
        collection = Collection.load(root)
        with open_store(root) as store:
            summary = StatsService(store).summarize(collection, datetime.now(timezone.utc))
    typer.echo(json.dumps(summary.to_dict(), indent=2))


@app.command()
def export(
    directory: DirectoryArg = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to FILE instead of stdout.")
    ] = None,
):
    """Export cards and their review records as JSON."""
    with _fatal_errors():
        root = resolve_directory(directory)
        collection = Collection.load(root)
        with open_store(root) as store:
            document = export_collection(collection, dict(store.iter_all()))

    text = document.model_dump_json(indent=2)
    if output is None:
        typer.echo(text)
        return
    try:
        output.write_text(text + "\n", encoding="utf-8")
    except OSError as e:
        typer.secho(f"Error: cannot write {output}: {e}", fg="red", err=True)
        raise typer.Exit(1) from e
    typer.secho(f"Exported {len(document.cards)} cards to {output}", fg="green")


# ---------------------------------------------------------------------------
# Orphans subgroup
# ---------------------------------------------------------------------------


@orphans_app.command("list")
def orphans_list(directory: DirectoryArg = None):
    """List the fingerprints of orphan review records."""
    with _fatal_errors():
        root = resolve_directory(directory)
        collection = Collection.load(root)
        with open_store(root) as store:
            orphans = list_orphans(collection, store)
    for fingerprint in orphans:
        typer.echo(fingerprint)


@orphans_app.command("delete")
def orphans_delete(
    directory: DirectoryArg = None,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Delete without asking for confirmation.")
    ] = False,
):
    """Delete orphan review records from the database."""
    with _fatal_errors():
        root = resolve_directory(directory)
        collection = Collection.load(root)
        with open_store(root) as store:
            orphans = list_orphans(collection, store)
            if not orphans:
                typer.secho("No orphan records.", fg="green")
                return
            if not yes:
                typer.confirm(f"Delete {len(orphans)} orphan records?", abort=True)
            deleted = delete_orphans(collection, store)
    typer.secho(f"Deleted {len(deleted)} orphan records.", fg="green")
