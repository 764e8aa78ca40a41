"""Client for the endoflife.date v1 API."""

import json
import threading
from typing import Any, Dict, List, Optional

import requests

from eol_scanner.exceptions import APIError, SyncCancelledError
from eol_scanner.http_client import create_session
from eol_scanner.logging_config import logger

BASE_URL_V1 = "https://endoflife.date/api/v1"
DEFAULT_TIMEOUT = 120  # seconds
CHUNK_SIZE = 64 * 1024


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SyncCancelledError(f"Catalog sync cancelled {stage}")


class EndOfLifeAPI:
    """
    Fetches the full product catalog from endoflife.date.

    The whole catalog is a single document (``/products/full``), so the
    client streams the body and checks the cancellation event between
    chunks. A cancelled download raises :class:`SyncCancelledError`.
    """

    def __init__(
        self,
        base_url: str = BASE_URL_V1,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = create_session()
        return self._session

    def close(self) -> None:
        """Close the requests session."""
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self) -> "EndOfLifeAPI":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_all_products_full(self, cancel_event: Optional[threading.Event] = None) -> List[Dict[str, Any]]:
        """
        Fetch every product with its identifiers and releases.

        Args:
            cancel_event: Set from another thread to abort the download

        Returns:
            Raw product documents, as listed under ``result``

        Raises:
            SyncCancelledError: If cancelled before or during the download
            APIError: On network failure, non-200 status or malformed JSON
        """
        _check_cancelled(cancel_event, "before fetching the product list")

        url = f"{self.base_url}/products/full"
        logger.info(f"Fetching full product list from {url}")

        try:
            response = self._get_session().get(url, timeout=self.timeout, stream=True)
        except requests.exceptions.RequestException as e:
            raise APIError(f"Request to {url} failed: {e}") from e

        try:
            if response.status_code != 200:
                raise APIError(f"endoflife.date API returned status {response.status_code}")

            chunks = []
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    _check_cancelled(cancel_event, "while downloading the product list")
                    if chunk:
                        chunks.append(chunk)
            except requests.exceptions.RequestException as e:
                raise APIError(f"Failed to read response from {url}: {e}") from e
        finally:
            response.close()

        _check_cancelled(cancel_event, "after downloading the product list")

        try:
            payload = json.loads(b"".join(chunks))
        except ValueError as e:
            raise APIError(f"Failed to parse product list JSON: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("result"), list):
            raise APIError("Unexpected product list format: missing 'result' array")

        products = payload["result"]
        logger.info(f"Fetched {len(products)} products (upstream total: {payload.get('total', 'n/a')})")
        return products
