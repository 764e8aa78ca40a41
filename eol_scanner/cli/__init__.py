"""Command-line interface for eol-scanner.

Options can also be set through environment variables (``EOL_SCANNER_DB``,
``EOL_SCANNER_FORWARD_DAYS``, ``EOL_SCANNER_MAX_AGE_DAYS``,
``EOL_SCANNER_API_URL``); command-line values take precedence.
"""

from .main import cli, evaluate_boolean, initialize_sentry, main, parse_categories

__all__ = [
    "cli",
    "main",
    "evaluate_boolean",
    "initialize_sentry",
    "parse_categories",
]
