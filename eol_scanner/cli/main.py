import json
import os
import signal
import sys
import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, Optional, Tuple

import click
import sentry_sdk

from .. import __version__
from .._catalog.store import CatalogStore, default_db_path
from .._resolution.evaluator import DEFAULT_FORWARD_LOOKUP_DAYS, MAX_LOOKUP_DAYS
from .._sync.api import BASE_URL_V1, EndOfLifeAPI
from .._sync.engine import DEFAULT_CATEGORIES, SyncEngine
from ..console import print_eol_products, print_scan_summary, print_stats, print_sync_result
from ..exceptions import ConfigurationError, EolScannerError, SBOMInputError, SyncCancelledError
from ..logging_config import logger, set_log_level, set_structured
from ..sbom_input import load_components
from ..scanning import DEFAULT_DB_MAX_AGE, Scanner, ScannerConfig

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def evaluate_boolean(value: str) -> bool:
    """
    Evaluate string values as boolean.

    Args:
        value: String value to evaluate

    Returns:
        Boolean result
    """
    return value.lower() in ["true", "yes", "yeah", "1"]


def initialize_sentry() -> None:
    """Initialize Sentry when a DSN is configured and telemetry is not disabled."""
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn or not evaluate_boolean(os.getenv("TELEMETRY", "true")):
        return

    def before_send(event, hint):
        """
        Filter events before sending to Sentry.
        Don't send user input errors - these are expected user errors.
        """
        if "exc_info" in hint:
            exc_type, exc_value, tb = hint["exc_info"]
            # APIError and SyncError should still be sent (upstream/tool problems)
            if isinstance(exc_value, (SBOMInputError, ConfigurationError)):
                return None
        return event

    sentry_sdk.init(
        dsn=sentry_dsn,
        send_default_pii=False,
        traces_sample_rate=0.0,
        release=f"eol-scanner@{__version__}",
        before_send=before_send,
    )


def parse_categories(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated category list, defaulting to the standard categories."""
    if not value:
        return DEFAULT_CATEGORIES
    categories = tuple(c.strip() for c in value.split(",") if c.strip())
    if not categories:
        raise ConfigurationError("At least one category must be given")
    return categories


@contextmanager
def interrupt_cancels(cancel_event: threading.Event) -> Iterator[None]:
    """
    While active, the first Ctrl-C sets ``cancel_event`` and a second one
    aborts immediately. The previous SIGINT handler is restored on exit.
    """

    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupt received, cancelling sync (press Ctrl-C again to abort)")
        cancel_event.set()

    # Signal handlers can only be installed from the main thread
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _fail(message: str) -> None:
    logger.error(message)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "--version", "-V", prog_name="eol-scanner")
@click.option(
    "--db",
    "db_path",
    envvar="EOL_SCANNER_DB",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the EOL catalog database [env: EOL_SCANNER_DB] (default: ~/eol-db/eol.db).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Log output format (logs go to stderr).",
)
@click.pass_context
def cli(ctx: click.Context, db_path: Optional[str], verbose: bool, log_format: str) -> None:
    """Check SBOM components against endoflife.date lifecycle data."""
    if verbose:
        set_log_level("DEBUG")
    set_structured(log_format == "json")
    initialize_sentry()

    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path or str(default_db_path())


@cli.group(context_settings=CONTEXT_SETTINGS)
def db() -> None:
    """Manage the local EOL catalog."""


@db.command("sync", context_settings=CONTEXT_SETTINGS)
@click.option(
    "--categories",
    default=",".join(DEFAULT_CATEGORIES),
    show_default=True,
    help="Comma-separated endoflife.date categories to sync.",
)
@click.option(
    "--api-url",
    envvar="EOL_SCANNER_API_URL",
    default=BASE_URL_V1,
    show_default=True,
    help="endoflife.date API base URL [env: EOL_SCANNER_API_URL].",
)
@click.option("--json", "as_json", is_flag=True, help="Print the sync result as JSON.")
@click.pass_context
def db_sync(ctx: click.Context, categories: str, api_url: str, as_json: bool) -> None:
    """Download the product catalog and update the local database."""
    try:
        category_list = parse_categories(categories)
        ScannerConfig(categories=list(category_list), api_base_url=api_url).validate()
    except ConfigurationError as e:
        _fail(f"Configuration error: {e}")

    cancel_event = threading.Event()

    api = EndOfLifeAPI(base_url=api_url)
    try:
        with interrupt_cancels(cancel_event), CatalogStore(ctx.obj["db_path"]) as store:
            result = SyncEngine(store, api).full_sync(category_list, cancel_event=cancel_event)
    except SyncCancelledError as e:
        _fail(f"Sync cancelled: {e}")
    except EolScannerError as e:
        _fail(f"Sync failed: {e}")
    finally:
        api.close()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_sync_result(result)
    if result.cancelled:
        sys.exit(1)


@db.command("stats", context_settings=CONTEXT_SETTINGS)
@click.option("--json", "as_json", is_flag=True, help="Print statistics as JSON.")
@click.pass_context
def db_stats(ctx: click.Context, as_json: bool) -> None:
    """Show catalog statistics."""
    with CatalogStore(ctx.obj["db_path"]) as store:
        stats = store.stats()
    if as_json:
        data = stats.to_dict()
        data["path"] = ctx.obj["db_path"]
        click.echo(json.dumps(data, indent=2))
    else:
        print_stats(stats, ctx.obj["db_path"])


@db.command("path", context_settings=CONTEXT_SETTINGS)
@click.pass_context
def db_path_cmd(ctx: click.Context) -> None:
    """Print the catalog database path."""
    click.echo(ctx.obj["db_path"])


@db.command("eol", context_settings=CONTEXT_SETTINGS)
@click.option("--include-future", is_flag=True, help="List every cycle with a known EOL, past or future.")
@click.option(
    "--days-ahead",
    type=click.IntRange(min=0, max=MAX_LOOKUP_DAYS),
    default=None,
    help="List cycles that are EOL or reach EOL within this many days.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the cycles as JSON.")
@click.pass_context
def db_eol(ctx: click.Context, include_future: bool, days_ahead: Optional[int], as_json: bool) -> None:
    """
    List catalog cycles that have reached end-of-life.

    --days-ahead takes precedence over --include-future.
    """
    with CatalogStore(ctx.obj["db_path"]) as store:
        products = store.eol_products(include_future=include_future, days_ahead=days_ahead)
    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "product": p.name,
                        "category": p.category_name,
                        "cycle": p.cycle,
                        "eol_date": p.eol_date,
                        "latest_version": p.latest_version,
                        "is_lts": p.is_lts,
                    }
                    for p in products
                ],
                indent=2,
            )
        )
    else:
        if days_ahead is not None:
            title = f"Cycles EOL or ending within {days_ahead} days"
        elif include_future:
            title = "Cycles with a known EOL"
        else:
            title = "EOL Cycles"
        print_eol_products(products, title=title)


@cli.command("scan", context_settings=CONTEXT_SETTINGS)
@click.argument("sbom_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-s", "--source", default=None, help="Label for the scanned image (default: the SBOM file name).")
@click.option(
    "-d",
    "--days",
    envvar="EOL_SCANNER_FORWARD_DAYS",
    type=click.IntRange(min=0, max=MAX_LOOKUP_DAYS),
    default=DEFAULT_FORWARD_LOOKUP_DAYS,
    show_default=True,
    help="Report components reaching EOL within this many days as EOL soon [env: EOL_SCANNER_FORWARD_DAYS].",
)
@click.option(
    "--max-age-days",
    envvar="EOL_SCANNER_MAX_AGE_DAYS",
    type=click.IntRange(min=1, max=MAX_LOOKUP_DAYS),
    default=DEFAULT_DB_MAX_AGE.days,
    show_default=True,
    help="Refresh the catalog when it is older than this [env: EOL_SCANNER_MAX_AGE_DAYS].",
)
@click.option("--no-update", is_flag=True, help="Do not refresh a stale catalog before scanning.")
@click.option(
    "-o",
    "--output",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.option("--only-eol", is_flag=True, help="Only show components that are EOL or EOL soon.")
@click.option(
    "--api-url",
    envvar="EOL_SCANNER_API_URL",
    default=BASE_URL_V1,
    show_default=True,
    help="endoflife.date API base URL [env: EOL_SCANNER_API_URL].",
)
@click.pass_context
def scan(
    ctx: click.Context,
    sbom_file: str,
    source: Optional[str],
    days: int,
    max_age_days: int,
    no_update: bool,
    output: str,
    only_eol: bool,
    api_url: str,
) -> None:
    """Check the components of SBOM_FILE for end-of-life releases."""
    config = ScannerConfig(
        db_path=ctx.obj["db_path"],
        max_age=timedelta(days=max_age_days),
        forward_lookup_days=days,
        auto_update=not no_update,
        api_base_url=api_url,
    )

    try:
        components, os_release = load_components(sbom_file)
    except SBOMInputError as e:
        _fail(f"Cannot read SBOM: {e}")

    cancel_event = threading.Event()

    try:
        with interrupt_cancels(cancel_event), Scanner(config) as scanner:
            scanner.ensure_catalog(cancel_event=cancel_event)
            summary = scanner.scan(components, os_release, source=source or os.path.basename(sbom_file))
    except ConfigurationError as e:
        _fail(f"Configuration error: {e}")
    except EolScannerError as e:
        _fail(f"Scan failed: {e}")

    if output == "json":
        click.echo(json.dumps(summary.to_dict(only_eol=only_eol), indent=2))
    else:
        print_scan_summary(summary.to_dict(), only_eol=only_eol)


def main() -> None:
    """Entry point for the ``eol-scanner`` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
