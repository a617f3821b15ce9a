import socket
from enum import Enum
from typing import Optional

from httpx import TimeoutException
from pydantic import BaseModel, ConfigDict, Field
from tenacity import RetryCallState

from ..models.response import Response
from .constants import DEFAULT_BACKOFF_MS, DEFAULT_MAX_RETRIES

HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500


class TransportErrorKind(str, Enum):
    TIMEOUT = "timeout"
    DNS = "dns"
    OTHER = "other"


def _is_dns_failure(exception: BaseException) -> bool:
    seen: set[int] = set()
    current: Optional[BaseException] = exception
    while current is not None and id(current) not in seen:
        if isinstance(current, socket.gaierror):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def classify_transport_error(exception: BaseException) -> TransportErrorKind:
    if isinstance(exception, TimeoutException):
        return TransportErrorKind.TIMEOUT
    if _is_dns_failure(exception):
        return TransportErrorKind.DNS
    return TransportErrorKind.OTHER


def is_retryable_exception(exception: BaseException) -> bool:
    """
    Check if an exception should trigger a retry attempt.

    Args:
        exception (BaseException): The exception raised by the attempt.

    Returns:
        bool: True for timeouts and DNS resolution failures, False otherwise.
    """
    return classify_transport_error(exception) is not TransportErrorKind.OTHER


def is_retryable_status_code(status_code: int) -> bool:
    return (
        status_code >= HTTP_INTERNAL_SERVER_ERROR
        or status_code == HTTP_TOO_MANY_REQUESTS
    )


def is_retryable_response(response: Response) -> bool:
    return is_retryable_status_code(response.status_code)


class RetryPolicy(BaseModel):
    """Retry budget and linear backoff shared by every request of a client.

    The n-th retry (``attempt_index`` starting at 0) waits
    ``backoff_ms * (attempt_index + 1)`` milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    backoff_ms: int = Field(default=DEFAULT_BACKOFF_MS, ge=0)

    def should_retry(
        self, error: Optional[BaseException], status_code: Optional[int] = None
    ) -> bool:
        if error is not None:
            return is_retryable_exception(error)
        if status_code is None:
            return False
        return is_retryable_status_code(status_code)

    def backoff_for(self, attempt_index: int) -> float:
        """Seconds to wait before retry number ``attempt_index``."""
        return self.backoff_ms * (attempt_index + 1) / 1000

    def worst_case_delay(self) -> float:
        """Total seconds slept when every retry is used."""
        n = self.max_retries
        return self.backoff_ms * n * (n + 1) / 2 / 1000

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def wait(self, retry_state: RetryCallState) -> float:
        # tenacity counts attempts from 1; the first retry follows attempt 1
        return self.backoff_for(retry_state.attempt_number - 1)
