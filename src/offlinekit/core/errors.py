"""Error taxonomy for the persistence layer.

Unavailable is the only error that routes a call to the offline queue.
ValidationFailed always reaches the caller. NotFound is absorbed during
replay. StorageCorrupt never leaves the queue module.
"""


class OfflineKitError(Exception):
    """Base exception for offlinekit errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class Unavailable(OfflineKitError):
    """Remote store unreachable (network failure, timeout, 5xx)."""


class ValidationFailed(OfflineKitError):
    """Remote store rejected the payload."""


class NotFound(OfflineKitError):
    """Target record does not exist on the remote store."""


class StorageCorrupt(OfflineKitError):
    """Local queue storage could not be read back."""


class NotAuthenticated(OfflineKitError):
    """No identity is signed in."""
