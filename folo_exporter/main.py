"""CLI entry point for folo-exporter."""
import logging
from pathlib import Path

import click
import requests

from folo_exporter.api_client import AUTH_FAILURE_STATUSES, ApiError, FoloClient
from folo_exporter.config import (
    API_MAX_LIMIT,
    CURSOR_FIELDS,
    ConfigError,
    get_db_path,
    get_log_dir,
    get_state_path,
    load_config,
)
from folo_exporter.credentials import CredentialError, resolve_cookie_header
from folo_exporter.database import Database, format_timestamp
from folo_exporter.exporter import FORMATS, parse_json_export, render
from folo_exporter.fetcher import FetchFailed
from folo_exporter.logging_config import setup_logging
from folo_exporter.pipeline import (
    ExportSession,
    describe_age,
    fetch_unread,
    mark_session_read,
    restore_from_cache,
)
from folo_exporter.reconciler import (
    EndpointUnavailable,
    MarkReadReconciler,
    ReconcileFailed,
    build_candidates,
)

EXIT_FAILURE = 1
EXIT_AUTH_FAILURE = 2

logger = logging.getLogger(__name__)


def get_db(config: dict) -> Database:
    """Get database instance."""
    return Database(get_db_path(config))


def build_client(config: dict, cookie_arg: str | None, state: str | None, api_base: str | None) -> FoloClient:
    """Resolve the credential and create an API client.

    Raises:
        CredentialError: No usable cookie.
    """
    base = api_base or config["api"]["base_url"]
    cookie_header = resolve_cookie_header(cookie_arg, get_state_path(config, state), base)
    return FoloClient(
        cookie_header,
        api_base=base,
        timeout=config["api"]["timeout"],
        user_agent=config["api"]["user_agent"],
        web_url=config["api"]["web_url"],
    )


def fail(message: str, code: int = EXIT_FAILURE):
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(code)


def write_output(output: str, out: str | None) -> Path | None:
    """Write to ``out`` (creating parent dirs) or stdout."""
    if not out:
        click.echo(output, nl=False)
        return None
    output_path = Path(out).expanduser().resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(output, encoding="utf-8")
    return output_path


def credential_options(f):
    """Options shared by commands that talk to the API."""
    f = click.option("--api-base", default=None, help="API base URL (default from config)")(f)
    f = click.option("--cookie", default=None, help="Raw cookie header (overrides --state and FOLO_COOKIE)")(f)
    f = click.option("--state", default=None, help="Storage state JSON path (default: ~/.folo-exporter/storage-state.json)")(f)
    return f


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="Config YAML path")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool):
    """Folo Exporter - export unread Folo articles to JSON or Markdown."""
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        fail(str(e))

    setup_logging(get_log_dir(), config["logging"]["retention_days"], verbose)
    logger.debug(f"folo-exporter starting ({ctx.invoked_subcommand})")
    ctx.obj = config


@cli.command("check-auth")
@credential_options
@click.pass_obj
def check_auth(config: dict, state: str | None, cookie: str | None, api_base: str | None):
    """Validate the current session against the Folo API."""
    try:
        client = build_client(config, cookie, state, api_base)
        count = client.check_auth()
    except CredentialError as e:
        fail(str(e), EXIT_AUTH_FAILURE)
    except ApiError as e:
        fail(f"Server error: {e}")
    except requests.RequestException as e:
        fail(f"Network error during auth check: {e}")

    click.echo(f"Auth OK (sample entries: {count})")


@cli.command()
@credential_options
@click.option("--format", "output_format", type=click.Choice(FORMATS), default="json", help="Output format")
@click.option("--out", default=None, help="Output file path. If omitted, prints to stdout")
@click.option("--batch-size", type=click.IntRange(1, API_MAX_LIMIT), default=None, help="Entries per request, max 100")
@click.option("--max-requests", type=click.IntRange(min=1), default=None, help="Safety cap for paginated requests")
@click.option("--cursor-field", type=click.Choice(CURSOR_FIELDS), default=None, help="Pagination cursor parameter")
@click.option("--mark-read", is_flag=True, help="Mark exported articles as read after writing the export")
@click.pass_obj
def fetch(
    config: dict,
    state: str | None,
    cookie: str | None,
    api_base: str | None,
    output_format: str,
    out: str | None,
    batch_size: int | None,
    max_requests: int | None,
    cursor_field: str | None,
    mark_read: bool,
):
    """Export unread entries to JSON or Markdown."""
    fetch_config = config["fetch"]
    db = get_db(config)
    session = ExportSession.open(db)

    try:
        client = build_client(config, cookie, state, api_base)
        client.check_auth()
    except CredentialError as e:
        fail(str(e), EXIT_AUTH_FAILURE)
    except ApiError as e:
        fail(f"Server error: {e}")
    except requests.RequestException as e:
        fail(f"Network error during auth check: {e}")

    try:
        result = fetch_unread(
            session,
            client,
            batch_size=batch_size or fetch_config["batch_size"],
            max_requests=max_requests or fetch_config["max_requests"],
            cursor_field=cursor_field or fetch_config["cursor_field"],
        )
    except FetchFailed as e:
        previous = session.cache.load()
        if previous is not None:
            click.echo(
                f"Previous export ({previous.count} articles, {describe_age(previous)}) "
                "is still available via `folo-exporter export`.",
                err=True,
            )
        # A session that expires mid-run is still an auth failure
        fail(str(e), EXIT_AUTH_FAILURE if e.status in AUTH_FAILURE_STATUSES else EXIT_FAILURE)

    output_path = write_output(render(session.articles, output_format), out)
    if output_path:
        click.echo(f"Exported {len(session.articles)} articles -> {output_path}", err=True)
    if result.truncated:
        click.echo(
            f"Warning: stopped after {result.request_count} requests; the export may be incomplete. "
            "Raise --max-requests to fetch more.",
            err=True,
        )

    if mark_read:
        # Export is already written; a mark-as-read failure must not undo it
        _mark_read(config, session, client)


def _mark_read(config: dict, session: ExportSession, client: FoloClient) -> bool:
    reconciler = MarkReadReconciler(
        client,
        build_candidates(config["mark_read"]["hosts"]),
        cache=session.cache,
    )
    try:
        result = mark_session_read(session, reconciler)
    except EndpointUnavailable:
        click.echo("Error: Mark as read is not available for this account; nothing was marked.", err=True)
        return False
    except ReconcileFailed as e:
        click.echo(f"Error: {e}", err=True)
        return False

    if result.count == 0:
        click.echo("All articles were already marked as read.", err=True)
    else:
        click.echo(f"Marked {result.count} articles as read.", err=True)
    return True


@cli.command()
@click.option("--format", "output_format", type=click.Choice(FORMATS), default="json", help="Output format")
@click.option("--out", default=None, help="Output file path. If omitted, prints to stdout")
@click.option("--from-json", "from_json", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Re-render a saved JSON export instead of the cache")
@click.pass_obj
def export(config: dict, output_format: str, out: str | None, from_json: str | None):
    """Re-export the last fetched articles without calling the API."""
    if from_json:
        try:
            articles = parse_json_export(Path(from_json).read_text(encoding="utf-8"))
        except (ValueError, AttributeError) as e:
            fail(f"Invalid JSON export {from_json}: {e}")
    else:
        session = ExportSession.open(get_db(config))
        snapshot = restore_from_cache(session)
        if snapshot is None:
            fail("No cached articles. Run `folo-exporter fetch` first.")
        if snapshot.is_stale(config["cache"]["stale_minutes"]):
            click.echo(f"Warning: cached articles were fetched {describe_age(snapshot)} and may be stale.", err=True)
        if snapshot.truncated:
            click.echo("Warning: the cached fetch stopped at the request limit; the export may be incomplete.", err=True)
        articles = session.articles

    output_path = write_output(render(articles, output_format), out)
    if output_path:
        click.echo(f"Exported {len(articles)} articles -> {output_path}", err=True)


@cli.command("mark-read")
@credential_options
@click.pass_obj
def mark_read_command(config: dict, state: str | None, cookie: str | None, api_base: str | None):
    """Mark the last fetched articles as read on Folo."""
    session = ExportSession.open(get_db(config))
    if restore_from_cache(session) is None:
        fail("No cached articles to mark as read. Run `folo-exporter fetch` first.")

    try:
        client = build_client(config, cookie, state, api_base)
    except CredentialError as e:
        fail(str(e), EXIT_AUTH_FAILURE)

    if not _mark_read(config, session, client):
        raise SystemExit(EXIT_FAILURE)


@cli.command()
@click.pass_obj
def status(config: dict):
    """Show cache age, marked-read count and the last fetch run."""
    db = get_db(config)
    session = ExportSession.open(db)

    snapshot = session.cache.load()
    if snapshot is None:
        click.echo("Cache: empty")
    else:
        stale = " (stale)" if snapshot.is_stale(config["cache"]["stale_minutes"]) else ""
        click.echo(f"Cache: {snapshot.count} articles, fetched {describe_age(snapshot)}{stale}")
        if snapshot.truncated:
            click.echo("  Incomplete: the fetch stopped at the request limit")
    click.echo(f"Marked as read since last fetch: {len(session.marked_read)}")

    last_run = db.get_last_run()
    if not last_run:
        click.echo("No fetch runs yet")
        return

    click.echo()
    click.echo(f"Last run: {format_timestamp(last_run['started_at'])}")
    click.echo(f"Status: {last_run['status'].capitalize()}")
    if last_run['status'] == 'completed':
        click.echo(f"  Articles: {last_run['items_fetched']}")
        click.echo(f"  Requests: {last_run['requests_made']}")
        click.echo(f"  Stopped: {last_run['stop_reason']}")
        if last_run['truncated']:
            click.echo("  ⚠️ Truncated by the request limit")
    elif last_run['error']:
        click.echo(f"  Error: {last_run['error']}")


@cli.command("clear-cache")
@click.pass_obj
def clear_cache(config: dict):
    """Drop the cached articles and the marked-as-read record."""
    session = ExportSession.open(get_db(config))
    session.reset()
    click.echo("Cache cleared")


if __name__ == "__main__":
    cli()
