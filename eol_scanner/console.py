"""Rich console output for eol-scanner.

A shared Rich Console writes human-readable tables to stdout. Logs go to
stderr (see :mod:`eol_scanner.logging_config`), so JSON output on stdout
stays machine-readable.
"""

import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from ._catalog.models import CatalogStats, EOLProduct
from ._resolution.evaluator import EOLStatus
from ._sync.result import SyncResult

IS_GITHUB_ACTIONS = os.getenv("GITHUB_ACTIONS") == "true"

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "highlight": "magenta",
        "status.eol": "bold red",
        "status.eol_soon": "yellow",
        "status.active": "green",
        "status.unknown": "dim",
    }
)

# Force colors ON in GitHub Actions (it supports ANSI colors but Rich may incorrectly disable them)
console = Console(
    theme=custom_theme,
    force_terminal=IS_GITHUB_ACTIONS or None,
    color_system="auto",
)

STATUS_LABELS = {
    EOLStatus.EOL: "EOL",
    EOLStatus.EOL_SOON: "EOL SOON",
    EOLStatus.ACTIVE: "ACTIVE",
    EOLStatus.UNKNOWN: "UNKNOWN",
}


def status_text(status: EOLStatus) -> str:
    """Rich markup for a status label."""
    return f"[status.{status.value}]{STATUS_LABELS[status]}[/status.{status.value}]"


def gha_warning(message: str, title: Optional[str] = None) -> None:
    """
    Emit a GitHub Actions warning annotation.

    Outside GitHub Actions, prints a styled warning instead.
    """
    if IS_GITHUB_ACTIONS:
        if title:
            print(f"::warning title={title}::{message}")
        else:
            print(f"::warning::{message}")
    else:
        console.print(f"[warning]⚠ {message}[/warning]")


def print_summary_table(title: str, data: Sequence[Tuple[str, Any]]) -> None:
    """
    Print a two-column metric/value table.

    Args:
        title: Table title
        data: (label, value) pairs
    """
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    for label, value in data:
        table.add_row(label, str(value))

    console.print(table)


def print_sync_result(result: SyncResult) -> None:
    """Print a catalog sync result and any per-item failures."""
    print_summary_table(
        "Catalog Sync",
        [
            ("Categories", ", ".join(result.categories)),
            ("Products", result.products_processed),
            ("Changed cycles", result.cycles_processed),
            ("Identifiers", result.identifiers_processed),
            ("Errors", result.errors),
            ("Duration", f"{result.duration:.1f}s"),
        ],
    )
    for failure in result.failures:
        console.print(f"[error]✗ {failure.kind} {failure.name}: {failure.detail}[/error]")
    if result.cancelled:
        console.print("[warning]Sync was cancelled before all products were processed[/warning]")
    elif result.errors:
        console.print(f"[warning]Sync completed with {result.errors} errors[/warning]")
    else:
        console.print("[success]✓ Catalog sync completed successfully[/success]")


def print_stats(stats: CatalogStats, db_path: str) -> None:
    """Print catalog statistics."""
    print_summary_table(
        "EOL Catalog",
        [
            ("Path", db_path),
            ("Last full sync", stats.last_full_sync or "never"),
            ("Last update check", stats.last_update_check or "never"),
            ("Categories synced", ", ".join(stats.categories_synced) or "-"),
            ("Categories", stats.total_categories),
            ("Products", stats.total_products),
            ("Cycles", stats.total_cycles),
            ("EOL cycles", stats.eol_cycles),
            ("Active cycles", stats.active_cycles),
            ("Identifiers", stats.total_identifiers),
        ],
    )

    if stats.identifiers_by_type:
        table = Table(title="Identifiers by type", show_header=True, header_style="bold")
        table.add_column("Type", style="cyan")
        table.add_column("Count", justify="right")
        for id_type, count in sorted(stats.identifiers_by_type.items()):
            table.add_row(id_type, str(count))
        console.print(table)


def print_eol_products(products: List[EOLProduct], title: str = "EOL Cycles") -> None:
    """Print catalog cycles that are (or will soon be) end-of-life."""
    if not products:
        console.print("[success]No EOL cycles found[/success]")
        return

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Product", style="cyan")
    table.add_column("Category")
    table.add_column("Cycle")
    table.add_column("EOL date")
    table.add_column("Latest")
    table.add_column("LTS", justify="center")
    for product in products:
        table.add_row(
            product.name,
            product.category_name or "-",
            product.cycle,
            product.eol_date or "-",
            product.latest_version or "-",
            "✓" if product.is_lts else "",
        )
    console.print(table)


def print_scan_summary(summary: Dict[str, Any], only_eol: bool = False) -> None:
    """
    Print a scan summary as Rich tables.

    Args:
        summary: ``ScanSummary.to_dict()`` output
        only_eol: Hide components that are neither EOL nor EOL soon
    """
    if summary.get("source"):
        console.print(f"[bold]Source:[/bold] {summary['source']}")
    console.print(f"[bold]Catalog updated:[/bold] {summary.get('db_last_updated') or 'never'}")

    os_info = summary.get("os")
    if os_info:
        os_status = EOLStatus(os_info["status"])
        os_name = os_info.get("pretty_name") or f"{os_info.get('name') or os_info['id']} {os_info.get('version', '')}"
        console.print(f"[bold]Operating system:[/bold] {os_name.strip()} {status_text(os_status)}")

    table = Table(title="Component EOL Status", show_header=True, header_style="bold")
    table.add_column("Status")
    table.add_column("Component", style="cyan")
    table.add_column("Version")
    table.add_column("Type")
    table.add_column("Product")
    table.add_column("Cycle")
    table.add_column("EOL date")
    table.add_column("Days", justify="right")

    for component in summary.get("components", []):
        status = EOLStatus(component["status"])
        if only_eol and status not in (EOLStatus.EOL, EOLStatus.EOL_SOON):
            continue
        days = component.get("days_until_eol")
        table.add_row(
            status_text(status),
            component["name"],
            component.get("version") or "-",
            component.get("type") or "-",
            component.get("matched_product") or "-",
            component.get("matched_cycle") or "-",
            component.get("eol_date") or "-",
            str(days) if days is not None else "-",
        )

    if table.row_count:
        console.print(table)
    elif only_eol:
        console.print("[success]✓ No EOL components found[/success]")

    print_summary_table(
        "Scan Summary",
        [
            ("Total components", summary.get("total_components", 0)),
            ("EOL", summary.get("eol_components", 0)),
            (f"EOL within {summary.get('forward_lookup_days')} days", summary.get("eol_soon_components", 0)),
            ("Active", summary.get("active_components", 0)),
            ("Unknown", summary.get("unknown_components", 0)),
        ],
    )

    eol_count = summary.get("eol_components", 0)
    if eol_count:
        gha_warning(f"{eol_count} components are end-of-life", title="EOL components")
