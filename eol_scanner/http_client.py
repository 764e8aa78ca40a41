"""HTTP client utilities with consistent user agent."""

from typing import Optional

import requests

from . import __version__

USER_AGENT = f"eol-scanner/{__version__}"


def get_default_headers(accept: Optional[str] = "application/json") -> dict:
    """
    Get default HTTP headers with user agent.

    Args:
        accept: Optional Accept header value

    Returns:
        Dictionary of HTTP headers
    """
    headers = {"User-Agent": USER_AGENT}
    if accept:
        headers["Accept"] = accept
    return headers


def create_session() -> requests.Session:
    """Create a requests session carrying the default headers."""
    session = requests.Session()
    session.headers.update(get_default_headers())
    return session
