"""Exception types shared by the storefront clients and services."""
from typing import Dict, Optional


class StorefrontError(Exception):
    """Base class for all storefront errors."""


class StoreAPIError(StorefrontError):
    """A ``game-store-api`` call failed.

    ``message`` is already phrased for the user; ``status`` is the HTTP
    status code, or ``None`` when the server was never reached.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class StorageUnavailable(StorefrontError):
    """The key-value store could not be read or written."""


class OperationCancelled(StorefrontError):
    """Raised when work is abandoned because its cancellation token fired."""


def user_message(kind: str, text: str) -> Dict[str, str]:
    """Build the ``{"type": "error"|"success", "text": ...}`` dict shown to users."""
    return {'type': kind, 'text': text}
