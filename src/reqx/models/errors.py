from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .response import Response


class ReqxError(Exception):
    """Base class for errors raised by reqx itself.

    Transport failures are not wrapped: they surface as the ``httpx``
    exception raised for the failing attempt.
    """

    def __init__(self, message: str = "reqx error"):
        self.message = message
        super().__init__(self.message)


class InvalidBodyError(ReqxError):
    """Raised when a request body does not fit the declared content type."""

    def __init__(self, message: str = "Invalid request body"):
        super().__init__(message)


class BodyNotReplayableError(InvalidBodyError):
    """Raised when a single-use stream body is needed for a second attempt.

    Pass a zero-argument callable returning a fresh stream instead of the
    stream itself to make the body replayable across retries.
    """

    def __init__(self, what: str = "request body"):
        super().__init__(
            f"The {what} is a single-use stream and was already sent by a "
            f"previous attempt; pass an opener callable to allow retries"
        )


class SigningError(ReqxError):
    """Raised when an OAuth1 signature cannot be computed for a URL."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Cannot sign request for '{url}': {reason}")


class MultipartWriteError(ReqxError):
    """Raised on the read side when the multipart writer failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Multipart body encoding failed: {reason}")


class MaxRetriesExceededError(ReqxError):
    """Raised when the retry budget ran out on a retryable response.

    The last response is attached so callers can still inspect the status
    code and headers the server kept returning.
    """

    def __init__(self, response: Optional["Response"], attempts: int):
        self.response = response
        self.attempts = attempts
        status = response.status_code if response is not None else None
        super().__init__(
            f"Max retries exceeded after {attempts} attempt(s), "
            f"last status: {status}"
        )
