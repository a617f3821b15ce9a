"""Streaming multipart/form-data encoder.

The encoder never materialises the whole body. A writer thread renders the
parts into a bounded pipe while the transport reads from the other end, so
at most a few chunks are held in memory at any time.
"""

import logging
import os
import queue
import threading
from typing import AsyncGenerator, Iterator, Optional, Union

import anyio.to_thread
from httpx import StreamConsumed

from ..models.errors import MultipartWriteError
from ..models.request import FileSource, FormFile, MultipartFormData

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
PIPE_DEPTH = 8
_POLL_INTERVAL = 0.05
_WRITER_JOIN_TIMEOUT = 1.0

_EOF = object()


class Pipe:
    """Bounded single-producer, single-consumer conduit of byte chunks.

    The producer ends the stream with :meth:`close_write`, optionally
    passing the error that stopped it; the consumer sees that error on its
    next :meth:`read_chunk`. Closing the consumer side makes every further
    write raise ``BrokenPipeError``.
    """

    def __init__(self, depth: int = PIPE_DEPTH) -> None:
        self._queue: "queue.Queue[Union[bytes, BaseException, object]]" = queue.Queue(
            maxsize=depth
        )
        self._reader_closed = threading.Event()
        self._finished = False

    def write(self, data: bytes) -> None:
        if data:
            self._put(bytes(data))

    def close_write(self, error: Optional[BaseException] = None) -> None:
        try:
            self._put(error if error is not None else _EOF)
        except BrokenPipeError:
            pass

    def _put(self, item: Union[bytes, BaseException, object]) -> None:
        while True:
            if self._reader_closed.is_set():
                raise BrokenPipeError("multipart reader is closed")
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def read_chunk(self) -> bytes:
        """Next chunk, or ``b""`` once the writer closed the pipe."""
        if self._finished:
            return b""
        item = self._queue.get()
        if item is _EOF:
            self._finished = True
            return b""
        if isinstance(item, BaseException):
            self._finished = True
            raise MultipartWriteError(str(item) or type(item).__name__) from item
        return item  # type: ignore[return-value]

    def close(self) -> None:
        self._reader_closed.set()
        self._finished = True
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break


def _escape_quotes(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _field_header(boundary: str, name: str) -> bytes:
    return (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{_escape_quotes(name)}"\r\n'
        f"\r\n"
    ).encode("utf-8")


def _file_header(boundary: str, file: FormFile) -> bytes:
    return (
        f"--{boundary}\r\n"
        f"Content-Disposition: form-data; "
        f'name="{_escape_quotes(file.field_name)}"; '
        f'filename="{_escape_quotes(file.file_name)}"\r\n'
        f"Content-Type: {file.content_type}\r\n"
        f"\r\n"
    ).encode("utf-8")


def _iter_source(source: FileSource) -> Iterator[bytes]:
    opened = source() if callable(source) else source
    try:
        read = getattr(opened, "read", None)
        if read is not None:
            while True:
                chunk = read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        else:
            for chunk in opened:  # type: ignore[union-attr]
                yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
    finally:
        # only streams we opened ourselves are ours to close
        if callable(source) and hasattr(opened, "close"):
            opened.close()


def _write_parts(pipe: Pipe, plan: MultipartFormData, boundary: str) -> None:
    try:
        for form_field in plan.fields:
            pipe.write(_field_header(boundary, form_field.name))
            pipe.write(form_field.value.encode("utf-8"))
            pipe.write(b"\r\n")

        for file in plan.files:
            pipe.write(_file_header(boundary, file))
            if file.data is not None:
                view = memoryview(file.data)
                for start in range(0, len(view), CHUNK_SIZE):
                    pipe.write(view[start : start + CHUNK_SIZE])
            else:
                for chunk in _iter_source(file.reader):  # type: ignore[arg-type]
                    pipe.write(chunk)
            pipe.write(b"\r\n")

        pipe.write(f"--{boundary}--\r\n".encode("ascii"))
    except BrokenPipeError:
        logger.debug("Multipart reader closed before the body was fully written")
        return
    except Exception as e:
        pipe.close_write(e)
        return

    pipe.close_write()


class MultipartStream:
    """Read end of a multipart body being encoded by a writer thread."""

    def __init__(self, pipe: Pipe, writer: threading.Thread) -> None:
        self._pipe = pipe
        self._writer = writer
        self._buffer = b""
        self._consumed = False

    def __iter__(self) -> Iterator[bytes]:
        # the pipe cannot be rewound, so a second pass would send nothing
        if self._consumed:
            raise StreamConsumed()
        self._consumed = True
        if self._buffer:
            data, self._buffer = self._buffer, b""
            yield data
        while True:
            chunk = self._pipe.read_chunk()
            if not chunk:
                return
            yield chunk

    async def aiter_chunks(self) -> AsyncGenerator[bytes, None]:
        if self._consumed:
            raise StreamConsumed()
        self._consumed = True
        if self._buffer:
            data, self._buffer = self._buffer, b""
            yield data
        while True:
            chunk = await anyio.to_thread.run_sync(self._pipe.read_chunk)
            if not chunk:
                return
            yield chunk

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return b"".join(iter(self))
        while len(self._buffer) < size:
            chunk = self._pipe.read_chunk()
            if not chunk:
                break
            self._buffer += chunk
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    def _check_writer_stopped(self) -> None:
        if self._writer.is_alive():
            logger.error(
                "Multipart writer did not stop after the reader was closed",
            )

    def close(self) -> None:
        self._pipe.close()
        self._writer.join(timeout=_WRITER_JOIN_TIMEOUT)
        self._check_writer_stopped()

    async def aclose(self) -> None:
        """Close the read end without blocking the event loop on the writer."""
        self._pipe.close()
        await anyio.to_thread.run_sync(self._writer.join, _WRITER_JOIN_TIMEOUT)
        self._check_writer_stopped()

    def __enter__(self) -> "MultipartStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def encode(
    plan: MultipartFormData, *, boundary: Optional[str] = None
) -> tuple[MultipartStream, str]:
    """Start encoding ``plan`` and return its read end and content type.

    Fields are written before files; both keep their insertion order. The
    returned content type carries the boundary and must replace any content
    type already set on the request.
    """
    boundary = boundary or os.urandom(16).hex()
    pipe = Pipe()
    writer = threading.Thread(
        target=_write_parts,
        args=(pipe, plan, boundary),
        name="reqx-multipart-writer",
        daemon=True,
    )
    writer.start()
    return MultipartStream(pipe, writer), f"multipart/form-data; boundary={boundary}"
