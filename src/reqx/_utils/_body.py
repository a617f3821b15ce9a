import threading
from collections.abc import AsyncIterable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, Union
from urllib.parse import urlencode

import anyio.to_thread
from pydantic import BaseModel, TypeAdapter

from ..models.errors import BodyNotReplayableError, InvalidBodyError
from ..models.request import ContentType, MultipartFormData
from . import _multipart

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)

Content = Union[bytes, Iterable[bytes], AsyncIterable[bytes], None]


class _SingleUse:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed = False

    def claim(self, what: str) -> None:
        with self._lock:
            if self._claimed:
                raise BodyNotReplayableError(what)
            self._claimed = True


@dataclass
class OpenedBody:
    """Body content for a single attempt."""

    content: Content
    content_type: Optional[str] = None
    closer: Optional[Callable[[], None]] = None
    acloser: Optional[Callable[[], Awaitable[None]]] = None

    def close(self) -> None:
        if self.closer is not None:
            self.closer()

    async def aclose(self) -> None:
        if self.acloser is not None:
            await self.acloser()
        else:
            self.close()


async def _aiter_blocking(source: Any) -> AsyncGenerator[bytes, None]:
    read = getattr(source, "read", None)
    if read is not None:
        while True:
            chunk = await anyio.to_thread.run_sync(read, _multipart.CHUNK_SIZE)
            if not chunk:
                return
            yield chunk
    else:
        iterator = iter(source)
        sentinel = object()
        while True:
            chunk = await anyio.to_thread.run_sync(next, iterator, sentinel)
            if chunk is sentinel:
                return
            yield chunk


@dataclass(frozen=True)
class RawBody:
    data: bytes

    def open(self, *, async_mode: bool = False) -> OpenedBody:
        return OpenedBody(self.data)


@dataclass(frozen=True)
class TextBody:
    text: str

    def open(self, *, async_mode: bool = False) -> OpenedBody:
        return OpenedBody(self.text.encode("utf-8"))


@dataclass(frozen=True)
class StructuredBody:
    """A value already serialized to JSON when the body was resolved."""

    value: Any
    encoded: bytes

    def open(self, *, async_mode: bool = False) -> OpenedBody:
        return OpenedBody(self.encoded)


@dataclass(frozen=True)
class FormBody:
    fields: tuple[tuple[str, Any], ...]

    def open(self, *, async_mode: bool = False) -> OpenedBody:
        return OpenedBody(urlencode(self.fields, doseq=True).encode("ascii"))


@dataclass(frozen=True)
class StreamBody:
    """A caller-supplied stream.

    ``source`` is either the stream itself, usable for one attempt only, or
    a zero-argument callable opening a fresh stream for every attempt.
    """

    source: Any
    _guard: _SingleUse = field(default_factory=_SingleUse, compare=False, repr=False)

    @property
    def is_replayable(self) -> bool:
        return callable(self.source)

    def open(self, *, async_mode: bool = False) -> OpenedBody:
        if self.is_replayable:
            stream = self.source()
        else:
            self._guard.claim("request body stream")
            stream = self.source

        closer = stream.close if self.is_replayable and hasattr(stream, "close") else None

        if isinstance(stream, AsyncIterable) and not isinstance(stream, Iterable):
            if not async_mode:
                raise InvalidBodyError(
                    "An async iterable body can only be sent by an async request"
                )
            return OpenedBody(stream, closer=closer)
        if async_mode:
            chunks = _aiter_blocking(stream)

            async def aclose() -> None:
                await chunks.aclose()
                if closer is not None:
                    closer()

            return OpenedBody(chunks, closer=closer, acloser=aclose)
        return OpenedBody(stream, closer=closer)


@dataclass(frozen=True)
class MultipartBody:
    plan: MultipartFormData
    _guard: _SingleUse = field(default_factory=_SingleUse, compare=False, repr=False)

    def open(self, *, async_mode: bool = False) -> OpenedBody:
        if not self.plan.is_replayable:
            self._guard.claim("multipart body")
        stream, content_type = _multipart.encode(self.plan)
        if not async_mode:
            return OpenedBody(stream, content_type=content_type, closer=stream.close)

        chunks = stream.aiter_chunks()

        async def aclose() -> None:
            await chunks.aclose()
            await stream.aclose()

        return OpenedBody(
            chunks, content_type=content_type, closer=stream.close, acloser=aclose
        )


Body = Union[RawBody, TextBody, StructuredBody, FormBody, StreamBody, MultipartBody]

_BODY_TYPES = (RawBody, TextBody, StructuredBody, FormBody, StreamBody, MultipartBody)


def _is_stream(value: Any) -> bool:
    return (
        hasattr(value, "read")
        or isinstance(value, (Iterator, AsyncIterable))
        or callable(value)
    )


def prepare_body(value: Any) -> Any:
    """Bind single-use sources to a body variant once, when the body is set.

    Every send of the same builder then shares one replay guard, so a
    consumed stream is rejected instead of being sent again empty.
    """
    if isinstance(value, _BODY_TYPES):
        return value
    if isinstance(value, MultipartFormData):
        return MultipartBody(value)
    if _is_stream(value):
        return StreamBody(value)
    return value


def serialize_json(value: Any) -> bytes:
    try:
        if isinstance(value, BaseModel):
            return value.model_dump_json(by_alias=True).encode("utf-8")
        return _ANY_ADAPTER.dump_json(value)
    except ValueError as e:
        raise InvalidBodyError(f"Cannot serialize body to JSON: {e}") from e


def resolve_body(value: Any, content_type: str) -> Optional[Body]:
    """Turn a user supplied body into its tagged variant.

    Raw bytes, text and streams are sent as-is whatever the content type.
    Other values are encoded according to ``content_type``.

    Raises:
        InvalidBodyError: If the value does not fit the content type.
    """
    if value is None:
        return None
    if isinstance(value, _BODY_TYPES):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return RawBody(bytes(value))
    if isinstance(value, str):
        return TextBody(value)
    if isinstance(value, MultipartFormData):
        return MultipartBody(value)
    if _is_stream(value):
        return StreamBody(value)

    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == ContentType.FORM_URLENCODED.value:
        if not isinstance(value, Mapping):
            raise InvalidBodyError(
                f"Form body must be a mapping, got {type(value).__name__}"
            )
        fields = sorted(value.items(), key=lambda item: str(item[0]))
        return FormBody(tuple(fields))
    if media_type == ContentType.MULTIPART_FORM.value:
        raise InvalidBodyError(
            f"Multipart body must be MultipartFormData, got {type(value).__name__}"
        )
    return StructuredBody(value, serialize_json(value))
