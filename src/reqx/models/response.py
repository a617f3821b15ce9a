import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterator, Optional

import httpx


def _check_status(status: int, left: int, right: Optional[int] = None) -> bool:
    if right is None:
        return status >= left
    return left <= status < right


@dataclass
class Response:
    """Outcome of a completed HTTP exchange.

    Buffered executions fill ``body`` and leave ``stream`` unset. Streaming
    executions keep the live ``httpx.Response`` in ``stream`` and leave
    ``body`` empty until the caller reads it.
    """

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers, repr=False)
    body: bytes = field(default=b"", repr=False)
    stream: Optional[httpx.Response] = field(default=None, repr=False)
    data: Any = field(default=None, repr=False)
    error: Any = field(default=None, repr=False)

    @classmethod
    def from_httpx(
        cls, response: httpx.Response, *, streaming: bool = False
    ) -> "Response":
        if streaming:
            return cls(
                status_code=response.status_code,
                headers=response.headers,
                stream=response,
            )
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            body=response.content,
        )

    @property
    def is_success(self) -> bool:
        return _check_status(self.status_code, 200, 300)

    @property
    def is_error(self) -> bool:
        return _check_status(self.status_code, 400, 500)

    @property
    def is_server_error(self) -> bool:
        return _check_status(self.status_code, 500)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)

    def read(self) -> bytes:
        """Drain a streamed body into ``body`` and release the connection."""
        if self.stream is not None:
            try:
                self.body = self.stream.read()
            finally:
                self.stream.close()
                self.stream = None
        return self.body

    async def aread(self) -> bytes:
        if self.stream is not None:
            try:
                self.body = await self.stream.aread()
            finally:
                await self.stream.aclose()
                self.stream = None
        return self.body

    def iter_bytes(self, chunk_size: Optional[int] = None) -> Iterator[bytes]:
        if self.stream is None:
            yield self.body
            return
        try:
            yield from self.stream.iter_bytes(chunk_size)
        finally:
            self.stream.close()

    async def aiter_bytes(
        self, chunk_size: Optional[int] = None
    ) -> AsyncIterator[bytes]:
        if self.stream is None:
            yield self.body
            return
        try:
            async for chunk in self.stream.aiter_bytes(chunk_size):
                yield chunk
        finally:
            await self.stream.aclose()

    def close(self) -> None:
        if self.stream is not None:
            self.stream.close()

    async def aclose(self) -> None:
        if self.stream is not None:
            await self.stream.aclose()
