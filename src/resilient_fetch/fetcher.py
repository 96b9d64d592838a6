"""JSON-over-HTTP fetching with a fixed retry schedule.

Only connectivity failures and garbled JSON bodies are retried. A response
with an error status is authoritative and never retried; a cancelled request
is never retried either.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

from resilient_fetch.cancellation import CancelToken
from resilient_fetch.config import Settings
from resilient_fetch.errors import (
    CancellationError,
    FetchError,
    HttpStatusError,
    PayloadParseError,
    TransportError,
)
from resilient_fetch.outcome import AttemptOutcome, NonRetryable, ParseFailure, Success, TransportFailure
from resilient_fetch.transport import RequestsTransport, Transport, TransportResponse
from resilient_fetch.url import sanitize_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

DebugLogger = Callable[[str, Dict[str, str]], None]

# Seconds to wait before retry 1, 2 and 3.
RETRY_DELAYS: Tuple[float, ...] = (0.05, 0.5, 1.0)

_JSON_START = frozenset('{["-0123456789tfn')


@dataclass(frozen=True)
class RequestSpec:
    """One logical request. Unset options are filled in by :meth:`resolve`."""

    url: str
    method: str = "GET"
    headers: Optional[Mapping[str, str]] = None
    body: Any = None
    retryable: Optional[bool] = None
    throw_on_error_status: bool = True
    parse_body_on_error: Optional[bool] = None
    timeout: Optional[float] = None
    cancel_token: Optional[CancelToken] = None
    debug_logger: Optional[DebugLogger] = None

    def resolve(self) -> "RequestSpec":
        """Return a copy with the method normalized and flag defaults applied."""
        method = (self.method or "GET").upper()
        retryable = method == "GET" if self.retryable is None else self.retryable
        parse_body_on_error = (
            not self.throw_on_error_status if self.parse_body_on_error is None else self.parse_body_on_error
        )
        return replace(self, method=method, retryable=retryable, parse_body_on_error=parse_body_on_error)


@dataclass
class FetchResult(Generic[T]):
    """Response metadata, decoded payload and retry history of one call."""

    url: str
    status: Optional[int]
    ok: bool
    headers: Mapping[str, str] = field(default_factory=dict)
    data: Optional[T] = None
    retries: int = 0
    error_messages: List[str] = field(default_factory=list)
    error: Optional[FetchError] = None


def _backoff(delay: float, cancel_token: CancelToken | None, path: str) -> None:
    if cancel_token is None:
        time.sleep(delay)
        return
    if cancel_token.wait(delay):
        raise CancellationError(f"Request cancelled while waiting to retry {path}", path=path)


def _is_non_json_payload(doc: str) -> bool:
    """True when the text could never be JSON, e.g. an HTML error page."""
    stripped = doc.lstrip()
    return not stripped or stripped[0] not in _JSON_START


def _failure_message(outcome: AttemptOutcome, method: str, path: str) -> str:
    if isinstance(outcome, TransportFailure):
        return f"Failed to {method} {path}"
    return f"Failed to get json payload for {path}"


class Fetcher:
    """JSON HTTP client retrying transient failures on a fixed schedule."""

    DEFAULT_HEADERS: Dict[str, str] = {
        "User-Agent": "resilient-fetch/0.1",
        "Accept": "application/json",
    }

    def __init__(
        self,
        timeout: float | None = 10.0,
        headers: Mapping[str, str] | None = None,
        transport: Transport | None = None,
        debug_logger: DebugLogger | None = None,
    ) -> None:
        self.timeout = timeout
        self.headers = {**self.DEFAULT_HEADERS, **(headers or {})}
        self.transport: Transport = transport or RequestsTransport()
        self.debug_logger = debug_logger

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "Fetcher":
        transport_settings = settings.transport
        headers = {"User-Agent": transport_settings.user_agent, **transport_settings.headers}
        return cls(timeout=transport_settings.timeout, headers=headers, **kwargs)

    def fetch_json(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        retryable: bool | None = None,
        throw_on_error_status: bool = True,
        parse_body_on_error: bool | None = None,
        timeout: float | None = None,
        cancel_token: CancelToken | None = None,
        debug_logger: DebugLogger | None = None,
    ) -> FetchResult[Any]:
        """Request ``url`` and decode its JSON body.

        Raises a :class:`FetchError` subclass when the call fails and
        ``throw_on_error_status`` is true; otherwise the error is returned on
        ``FetchResult.error``. Cancellation is always raised.
        """
        spec = RequestSpec(
            url=url,
            method=method,
            headers=headers,
            body=body,
            retryable=retryable,
            throw_on_error_status=throw_on_error_status,
            parse_body_on_error=parse_body_on_error,
            timeout=timeout,
            cancel_token=cancel_token,
            debug_logger=debug_logger,
        )
        return self.run(spec)

    def run(self, spec: RequestSpec) -> FetchResult[Any]:
        """Execute ``spec`` through the retry loop."""
        spec = spec.resolve()
        path = sanitize_path(spec.url)
        headers, body = self._prepare(spec)
        timeout = spec.timeout if spec.timeout is not None else self.timeout

        error_messages: List[str] = []
        attempt = 0
        try:
            while True:
                outcome = self._attempt(spec, headers, body, timeout, path)
                if isinstance(outcome, Success):
                    break
                message = _failure_message(outcome, spec.method, path)
                logger.debug("Attempt %d failed: %s (%r)", attempt + 1, message, outcome.cause)
                if isinstance(outcome, NonRetryable) or not spec.retryable:
                    error_messages.append(message)
                    break
                if attempt >= len(RETRY_DELAYS):
                    break
                error_messages.append(message)
                delay = RETRY_DELAYS[attempt]
                logger.info("Retrying %s %s in %.2fs (retry %d)", spec.method, path, delay, attempt + 1)
                _backoff(delay, spec.cancel_token, path)
                attempt += 1
        except CancellationError as exc:
            exc.url = exc.url or spec.url
            exc.path = exc.path or path
            exc.with_history(attempt, error_messages)
            self._report_retries(spec, path, attempt, error_messages)
            raise

        self._report_retries(spec, path, attempt, error_messages)
        result = self._build_result(spec, path, outcome, attempt, error_messages)
        if result.error is not None:
            logger.warning("%s after %d retries", result.error, attempt)
            if spec.throw_on_error_status:
                raise result.error
        return result

    def _prepare(self, spec: RequestSpec) -> Tuple[Dict[str, str], bytes | str | None]:
        headers = {**self.headers, **(spec.headers or {})}
        body = spec.body
        if body is None or isinstance(body, (str, bytes)):
            return headers, body
        if not any(key.lower() == "content-type" for key in headers):
            headers["Content-Type"] = "application/json"
        return headers, json.dumps(body)

    def _attempt(
        self,
        spec: RequestSpec,
        headers: Dict[str, str],
        body: bytes | str | None,
        timeout: float | None,
        path: str,
    ) -> AttemptOutcome:
        try:
            response = self.transport.send(spec.url, spec.method, headers, body, timeout, spec.cancel_token)
        except OSError as exc:
            # A cancel during connect usually shows up as a connection error.
            self._raise_if_cancelled(spec, path, exc)
            return TransportFailure(exc)

        if not (response.ok or spec.parse_body_on_error):
            response.close()
            return Success(response)

        try:
            data = json.loads(response.read())
        except (OSError, ValueError) as exc:
            if isinstance(exc, OSError):
                self._raise_if_cancelled(spec, path, exc)
            if not response.ok:
                # The status is authoritative; an unreadable error body never causes a retry.
                logger.debug("Ignoring unreadable error body from %s: %r", path, exc)
                return Success(response, body_error=exc)
            if isinstance(exc, json.JSONDecodeError) and _is_non_json_payload(exc.doc):
                return NonRetryable(exc, response)
            # Dropped connection, garbled JSON or undecodable bytes mid-body.
            return ParseFailure(exc, response)
        return Success(response, data)

    @staticmethod
    def _raise_if_cancelled(spec: RequestSpec, path: str, cause: BaseException) -> None:
        token = spec.cancel_token
        if token is not None and token.cancelled:
            raise CancellationError(
                f"Request cancelled during {spec.method} {path}", url=spec.url, path=path, cause=cause
            )

    def _build_result(
        self,
        spec: RequestSpec,
        path: str,
        outcome: AttemptOutcome,
        retries: int,
        error_messages: List[str],
    ) -> FetchResult[Any]:
        response: Optional[TransportResponse] = None
        data: Any = None
        error: Optional[FetchError] = None
        history = {"url": spec.url, "path": path, "retries": retries, "error_messages": error_messages}

        if isinstance(outcome, Success):
            response = outcome.response
            data = outcome.data
            if not response.ok:
                error = HttpStatusError(
                    f"HTTP Error [{response.status}] from {path}",
                    status=response.status,
                    cause=outcome.body_error,
                    **history,
                )
        elif isinstance(outcome, TransportFailure):
            error = TransportError(
                _failure_message(outcome, spec.method, path), cause=outcome.cause, **history
            )
        else:
            response = outcome.response
            error = PayloadParseError(
                _failure_message(outcome, spec.method, path),
                status=response.status if response is not None else None,
                cause=outcome.cause,
                **history,
            )

        return FetchResult(
            url=spec.url,
            status=response.status if response is not None else None,
            ok=bool(response is not None and response.ok),
            headers=response.headers if response is not None else {},
            data=data,
            retries=retries,
            error_messages=list(error_messages),
            error=error,
        )

    def _report_retries(self, spec: RequestSpec, path: str, retries: int, error_messages: List[str]) -> None:
        debug_logger = spec.debug_logger or self.debug_logger
        if retries <= 0 or debug_logger is None:
            return
        tags = {"xhrUrl": path}
        if error_messages:
            tags["errorMessages"] = ", ".join(error_messages)
        try:
            debug_logger(f"{retries} retries for {path}", tags)
        except Exception:  # noqa: BLE001
            logger.exception("Debug logger failed for %s", path)


def fetch_json(url: str, transport: Transport | None = None, **options: Any) -> FetchResult[Any]:
    """Fetch ``url`` with a fresh default :class:`Fetcher`. See :meth:`Fetcher.fetch_json`."""
    return Fetcher(transport=transport).fetch_json(url, **options)
