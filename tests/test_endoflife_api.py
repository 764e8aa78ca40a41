"""Tests for the endoflife.date API client."""

import json
import threading
import unittest
from unittest.mock import Mock

import requests

from eol_scanner._sync.api import BASE_URL_V1, DEFAULT_TIMEOUT, EndOfLifeAPI
from eol_scanner.exceptions import APIError, SyncCancelledError
from eol_scanner.http_client import USER_AGENT


def _response(status_code=200, body=None, chunks=None):
    response = Mock()
    response.status_code = status_code
    if chunks is None:
        chunks = [json.dumps(body if body is not None else {"result": [], "total": 0}).encode()]
    response.iter_content.return_value = iter(chunks)
    return response


class TestEndOfLifeAPI(unittest.TestCase):
    def setUp(self):
        self.session = Mock(spec=requests.Session)
        self.api = EndOfLifeAPI(session=self.session)

    def test_fetches_full_product_list(self):
        products = [{"name": "python", "category": "lang"}, {"name": "go", "category": "lang"}]
        response = _response(body={"result": products, "total": 2})
        self.session.get.return_value = response

        result = self.api.get_all_products_full()

        self.assertEqual(result, products)
        self.session.get.assert_called_once_with(f"{BASE_URL_V1}/products/full", timeout=DEFAULT_TIMEOUT, stream=True)
        response.close.assert_called_once()

    def test_reassembles_chunked_body(self):
        body = json.dumps({"result": [{"name": "nginx"}]}).encode()
        self.session.get.return_value = _response(chunks=[body[:10], b"", body[10:]])

        self.assertEqual(self.api.get_all_products_full(), [{"name": "nginx"}])

    def test_custom_base_url_trailing_slash(self):
        api = EndOfLifeAPI(base_url="https://mirror.example.com/api/v1/", session=self.session)
        self.session.get.return_value = _response()

        api.get_all_products_full()

        self.assertEqual(self.session.get.call_args[0][0], "https://mirror.example.com/api/v1/products/full")

    def test_non_200_raises(self):
        response = _response(status_code=503)
        self.session.get.return_value = response

        with self.assertRaises(APIError) as ctx:
            self.api.get_all_products_full()
        self.assertIn("503", str(ctx.exception))
        response.close.assert_called_once()

    def test_connection_error_raises_api_error(self):
        self.session.get.side_effect = requests.exceptions.ConnectionError("refused")

        with self.assertRaises(APIError):
            self.api.get_all_products_full()

    def test_invalid_json_raises(self):
        self.session.get.return_value = _response(chunks=[b"<html>"])

        with self.assertRaises(APIError):
            self.api.get_all_products_full()

    def test_missing_result_raises(self):
        self.session.get.return_value = _response(body={"products": []})

        with self.assertRaises(APIError):
            self.api.get_all_products_full()

    def test_cancel_before_request(self):
        cancel = threading.Event()
        cancel.set()

        with self.assertRaises(SyncCancelledError):
            self.api.get_all_products_full(cancel_event=cancel)
        self.session.get.assert_not_called()

    def test_cancel_during_download(self):
        cancel = threading.Event()

        def chunks():
            yield b'{"result": ['
            cancel.set()
            yield b"]}"

        response = _response(chunks=chunks())
        self.session.get.return_value = response

        with self.assertRaises(SyncCancelledError):
            self.api.get_all_products_full(cancel_event=cancel)
        response.close.assert_called_once()

    def test_close_releases_session(self):
        self.api.close()
        self.session.close.assert_called_once()


class TestDefaultSession(unittest.TestCase):
    def test_lazy_session_has_user_agent(self):
        api = EndOfLifeAPI()
        session = api._get_session()
        try:
            self.assertEqual(session.headers["User-Agent"], USER_AGENT)
            self.assertIs(api._get_session(), session)
        finally:
            api.close()
