"""Pluggable HTTP transport used by the fetch engine."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol

import requests

from resilient_fetch.cancellation import CancelToken
from resilient_fetch.errors import CancellationError
from resilient_fetch.url import sanitize_path


class TransportResponse(Protocol):
    """Response metadata plus a one-shot body reader.

    ``read`` releases the connection when done; ``close`` releases it unread.
    """

    status: int
    ok: bool
    headers: Mapping[str, str]

    def read(self) -> bytes: ...

    def close(self) -> None: ...


class Transport(Protocol):
    """Anything able to deliver one HTTP request.

    Connectivity failures must be raised as ``OSError`` (requests' exceptions
    qualify); cancellation must be raised as ``CancellationError``.
    """

    def send(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: bytes | str | None,
        timeout: float | None,
        cancel_token: CancelToken | None,
    ) -> TransportResponse: ...


class RequestsResponse:
    """Adapts a streamed ``requests`` response to :class:`TransportResponse`."""

    def __init__(self, response: Any, cancel_token: CancelToken | None, chunk_size: int, url: str) -> None:
        self._response = response
        self._cancel_token = cancel_token
        self._chunk_size = chunk_size
        self._url = url
        self._path = sanitize_path(url)
        self.status: int = response.status_code
        self.ok = 200 <= self.status < 300
        # requests' CaseInsensitiveDict, kept as-is for case-insensitive lookups.
        self.headers: Mapping[str, str] = response.headers if response.headers is not None else {}

    def close(self) -> None:
        self._response.close()

    def _check_cancelled(self) -> None:
        if self._cancel_token is not None:
            self._cancel_token.raise_if_cancelled(
                f"Request cancelled while reading {self._path}", url=self._url, path=self._path
            )

    def read(self) -> bytes:
        unregister = None
        if self._cancel_token is not None:
            unregister = self._cancel_token.on_cancel(self._response.close)
        chunks = []
        try:
            for chunk in self._response.iter_content(chunk_size=self._chunk_size):
                self._check_cancelled()
                chunks.append(chunk)
        except Exception:
            # A cancel closes the response underneath a blocked read.
            self._check_cancelled()
            raise
        finally:
            if unregister is not None:
                unregister()
            self._response.close()
        self._check_cancelled()
        return b"".join(chunks)


class RequestsTransport:
    """Default transport built on ``requests``, one connection per request."""

    def __init__(self, chunk_size: int = 8192) -> None:
        self.chunk_size = chunk_size

    def send(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: bytes | str | None,
        timeout: float | None,
        cancel_token: CancelToken | None,
    ) -> RequestsResponse:
        path = sanitize_path(url)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(f"Request cancelled before {method} {path}", url=url, path=path)

        kwargs: Dict[str, Any] = {"headers": dict(headers), "timeout": timeout, "stream": True}
        if body is not None:
            kwargs["data"] = body
        response = requests.request(method, url, **kwargs)

        if cancel_token is not None and cancel_token.cancelled:
            response.close()
            raise CancellationError(f"Request cancelled during {method} {path}", url=url, path=path)
        return RequestsResponse(response, cancel_token, self.chunk_size, url)
