"""Explicit cancellation tokens for network work that may be superseded."""
import threading

from .errors import OperationCancelled


class CancellationToken:
    """A one-shot flag shared between the issuer of a request and the code
    performing it.

    The issuer calls :meth:`cancel` when a newer request replaces this one
    (or when its owner goes away); the worker calls
    :meth:`raise_if_cancelled` at each suspension point and must not apply
    its result once the token has fired.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("operation was cancelled")


def check(token) -> None:
    """``raise_if_cancelled`` for an optional token."""
    if token is not None:
        token.raise_if_cancelled()
