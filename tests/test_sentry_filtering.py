"""Test Sentry error filtering for user vs system errors."""

import unittest
from unittest.mock import patch

import sentry_sdk

from eol_scanner.cli.main import initialize_sentry
from eol_scanner.exceptions import APIError, ConfigurationError, SBOMInputError, SyncError


class TestSentryFiltering(unittest.TestCase):
    def setUp(self):
        patcher = patch.dict(
            "os.environ", {"SENTRY_DSN": "https://public@o0.ingest.sentry.io/0", "TELEMETRY": "true"}
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def _before_send(self):
        with patch.object(sentry_sdk, "init") as init:
            initialize_sentry()
        init.assert_called_once()
        return init.call_args.kwargs["before_send"]

    def _send(self, exc):
        event = {"exception": {"values": [{"type": type(exc).__name__}]}}
        return self._before_send()(event, {"exc_info": (type(exc), exc, None)})

    def test_filters_sbom_input_errors(self):
        """Unreadable SBOMs are user input errors and are not reported."""
        self.assertIsNone(self._send(SBOMInputError("Invalid JSON")))

    def test_filters_configuration_errors(self):
        self.assertIsNone(self._send(ConfigurationError("Invalid API URL")))

    def test_allows_api_errors(self):
        self.assertIsNotNone(self._send(APIError("HTTP 500")))

    def test_allows_sync_errors(self):
        self.assertIsNotNone(self._send(SyncError("Initial catalog sync failed")))

    def test_events_without_exceptions_pass_through(self):
        event = {"message": "hello"}
        self.assertIs(self._before_send()(event, {}), event)

    def test_release_names_the_package(self):
        with patch.object(sentry_sdk, "init") as init:
            initialize_sentry()
        self.assertTrue(init.call_args.kwargs["release"].startswith("eol-scanner@"))
        self.assertFalse(init.call_args.kwargs["send_default_pii"])


class TestSentryDisabled(unittest.TestCase):
    def test_no_dsn(self):
        # conftest removes SENTRY_DSN
        with patch.dict("os.environ", {"TELEMETRY": "true"}):
            with patch.object(sentry_sdk, "init") as init:
                initialize_sentry()
        init.assert_not_called()

    def test_telemetry_off(self):
        env = {"SENTRY_DSN": "https://public@o0.ingest.sentry.io/0", "TELEMETRY": "false"}
        with patch.dict("os.environ", env):
            with patch.object(sentry_sdk, "init") as init:
                initialize_sentry()
        init.assert_not_called()
