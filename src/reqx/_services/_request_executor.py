from logging import WARNING, getLogger
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
)

from .._utils._request_spec import RequestSpec
from .._utils._retry import (
    RetryPolicy,
    is_retryable_exception,
    is_retryable_response,
)
from .._utils._sanitize import sanitize_headers
from ..models.errors import MaxRetriesExceededError
from ..models.response import Response

logger = getLogger("reqx")

SpecBuilder = Callable[[], RequestSpec]


def _on_exhausted(retry_state: RetryCallState) -> Any:
    outcome = retry_state.outcome
    assert outcome is not None
    if outcome.failed:
        # the last attempt failed at transport level: surface that failure
        exception = outcome.exception()
        assert exception is not None
        raise exception
    raise MaxRetriesExceededError(outcome.result(), retry_state.attempt_number)


class RequestExecutor:
    """Sends requests through ``httpx`` and retries transient failures.

    Each attempt calls ``build`` again and sends a freshly built
    :class:`RequestSpec`. Attempts run strictly one after the other; the
    delays between them come from the :class:`RetryPolicy`.

    Retried outcomes:
        - timeouts and DNS resolution failures;
        - responses with status 429 or 5xx.

    Everything else is returned (responses) or raised (errors) as soon as it
    is observed. When the budget runs out the last transport error is
    raised, or :class:`MaxRetriesExceededError` carrying the last response
    if the final attempt got one.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        client: Optional[httpx.Client] = None,
        client_async: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._policy = policy
        self._client = client
        self._client_async = client_async

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def _retrying_kwargs(self) -> dict[str, Any]:
        return {
            "stop": stop_after_attempt(self._policy.max_attempts),
            "wait": self._policy.wait,
            "retry": (
                retry_if_exception(is_retryable_exception)
                | retry_if_result(is_retryable_response)
            ),
            "before_sleep": before_sleep_log(logger, WARNING),
            "retry_error_callback": _on_exhausted,
        }

    def execute(self, build: SpecBuilder, *, stream: bool = False) -> Response:
        """
        Run a request to completion.

        Args:
            build (SpecBuilder): Returns a fresh RequestSpec for every attempt.
            stream (bool): Return the body as a live stream instead of reading it.

        Returns:
            Response: The first non-retryable response.

        Raises:
            MaxRetriesExceededError: If every attempt got a retryable response.
            httpx.HTTPError: The transport error of a terminal or final attempt.
        """
        if self._client is None:
            raise RuntimeError("RequestExecutor has no sync client")
        retrying = Retrying(**self._retrying_kwargs())
        return retrying(self._attempt, build, stream)

    async def execute_async(
        self, build: SpecBuilder, *, stream: bool = False
    ) -> Response:
        """Asynchronous counterpart of :meth:`execute`."""
        if self._client_async is None:
            raise RuntimeError("RequestExecutor has no async client")
        retrying = AsyncRetrying(**self._retrying_kwargs())
        attempt: Callable[..., Awaitable[Response]] = self._attempt_async
        return await retrying(attempt, build, stream)

    def _log_request(self, spec: RequestSpec) -> None:
        logger.debug(f"Request: {spec.method} {spec.url}")
        logger.debug(f"HEADERS: {sanitize_headers(spec.headers)}")

    def _attempt(self, build: SpecBuilder, stream: bool) -> Response:
        assert self._client is not None
        spec = build()
        self._log_request(spec)
        try:
            request = self._client.build_request(
                spec.method, spec.url, headers=spec.headers, content=spec.content
            )
            raw = self._client.send(request, stream=True)
        finally:
            spec.close()

        if stream:
            response = Response.from_httpx(raw, streaming=True)
            if is_retryable_response(response):
                raw.close()
                response.stream = None
            return response

        try:
            raw.read()
        finally:
            raw.close()
        return Response.from_httpx(raw)

    async def _attempt_async(self, build: SpecBuilder, stream: bool) -> Response:
        assert self._client_async is not None
        spec = build()
        self._log_request(spec)
        try:
            request = self._client_async.build_request(
                spec.method, spec.url, headers=spec.headers, content=spec.content
            )
            raw = await self._client_async.send(request, stream=True)
        finally:
            await spec.aclose()

        if stream:
            response = Response.from_httpx(raw, streaming=True)
            if is_retryable_response(response):
                await raw.aclose()
                response.stream = None
            return response

        try:
            await raw.aread()
        finally:
            await raw.aclose()
        return Response.from_httpx(raw)
