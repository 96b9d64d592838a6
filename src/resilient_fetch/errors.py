"""Exceptions surfaced by the fetch engine."""

from __future__ import annotations

from typing import List, Optional


class FetchError(RuntimeError):
    """Base class for failures of a logical JSON request.

    Carries the sanitized path used in the message, the retry history of the
    call and, when one was received, the HTTP status of the last response.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        path: str = "",
        status: Optional[int] = None,
        cause: BaseException | None = None,
        retries: int = 0,
        error_messages: List[str] | None = None,
    ) -> None:
        self.message = message
        self.url = url
        self.path = path
        self.status = status
        self.cause = cause
        self.retries = retries
        self.error_messages: List[str] = list(error_messages or [])
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def with_history(self, retries: int, error_messages: List[str]) -> "FetchError":
        """Attach the retry history accumulated by the engine."""
        self.retries = retries
        self.error_messages = list(error_messages)
        return self


class TransportError(FetchError):
    """The request could not be delivered or no response arrived."""


class PayloadParseError(FetchError):
    """The response body could not be read or decoded as JSON."""


class HttpStatusError(FetchError):
    """The final response carried a non-2xx status."""


class CancellationError(FetchError):
    """The caller cancelled the request. Never retried."""
