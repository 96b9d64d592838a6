"""Per-attempt outcomes consumed by the retry loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from resilient_fetch.transport import TransportResponse


@dataclass(frozen=True)
class Success:
    """A response arrived and its body (if wanted) decoded. Status may be non-2xx.

    ``body_error`` holds why a non-2xx body could not be decoded, if it was tried.
    """

    response: TransportResponse
    data: Any = None
    body_error: Optional[BaseException] = None


@dataclass(frozen=True)
class TransportFailure:
    """No response: DNS, refused or reset connection, timeout."""

    cause: BaseException


@dataclass(frozen=True)
class ParseFailure:
    """The body could not be read or was garbled JSON. Retryable."""

    cause: BaseException
    response: TransportResponse


@dataclass(frozen=True)
class NonRetryable:
    """The body is not JSON at all, e.g. an HTML error page."""

    cause: BaseException
    response: Optional[TransportResponse] = None


AttemptOutcome = Union[Success, TransportFailure, ParseFailure, NonRetryable]
