"""Custom exceptions for eol-scanner."""


class EolScannerError(Exception):
    """Base exception for all eol-scanner operations."""


class ConfigurationError(EolScannerError):
    """Raised when configuration validation fails."""


class APIError(EolScannerError):
    """Raised when the remote catalog API cannot be reached or returns bad data."""


class SyncError(EolScannerError):
    """Raised when a catalog sync has to abort."""


class SyncCancelledError(SyncError):
    """Raised when a catalog sync is cancelled before any catalog write."""


class SBOMInputError(EolScannerError):
    """Raised when an SBOM or component list cannot be read."""
