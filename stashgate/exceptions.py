"""
Exception hierarchy for Stashgate.

All errors raised by the gateway derive from StashgateError so callers can
catch gateway failures in one place.
"""


class StashgateError(Exception):
    """Base class for all Stashgate errors."""
    pass


class ConfigurationError(StashgateError):
    """Raised when gateway configuration is missing or invalid."""
    pass


class NetworkError(StashgateError):
    """
    Raised when a network fetch fails at the transport level.

    Covers connection failures, aborted fetches and timeouts. A completed
    fetch with a non-2xx status is a response, not a NetworkError.
    """

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class StorageError(StashgateError):
    """Raised when the store backend is unavailable or an operation fails."""
    pass


class StorageReadError(StorageError):
    """Raised when reading from or enumerating the store fails."""
    pass


class StorageWriteError(StorageError):
    """Raised when writing to or deleting from the store fails."""
    pass


class LifecycleError(StashgateError):
    """Raised when a lifecycle transition is requested from an invalid state."""
    pass


class InstallError(LifecycleError):
    """
    Raised when installing a generation fails.

    Attributes:
        version: Version label that failed to install
        failed_key: Manifest key whose fetch failed, if any
    """

    def __init__(self, message: str, version: str = "", failed_key: str = ""):
        self.version = version
        self.failed_key = failed_key
        super().__init__(message)
