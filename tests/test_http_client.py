"""Tests for http_client module."""

import unittest

import requests

from eol_scanner import __version__
from eol_scanner.http_client import USER_AGENT, create_session, get_default_headers


class TestUserAgent(unittest.TestCase):
    def test_user_agent_format(self):
        """Format: eol-scanner/X.Y.Z"""
        name, version = USER_AGENT.split("/")
        self.assertEqual(name, "eol-scanner")
        self.assertEqual(version, __version__)


class TestGetDefaultHeaders(unittest.TestCase):
    def test_default_headers(self):
        self.assertEqual(get_default_headers(), {"User-Agent": USER_AGENT, "Accept": "application/json"})

    def test_custom_accept(self):
        self.assertEqual(get_default_headers(accept="*/*")["Accept"], "*/*")

    def test_no_accept(self):
        self.assertEqual(get_default_headers(accept=None), {"User-Agent": USER_AGENT})


class TestCreateSession(unittest.TestCase):
    def test_session_carries_headers(self):
        session = create_session()
        try:
            self.assertIsInstance(session, requests.Session)
            self.assertEqual(session.headers["User-Agent"], USER_AGENT)
            self.assertEqual(session.headers["Accept"], "application/json")
        finally:
            session.close()
