from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Callable, Iterable, Optional, Union

FileSource = Union[IO[bytes], Iterable[bytes], Callable[[], Union[IO[bytes], Iterable[bytes]]]]


class Method(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class ContentType(str, Enum):
    FORM_URLENCODED = "application/x-www-form-urlencoded"
    JSON = "application/json; charset=UTF-8"
    MULTIPART_FORM = "multipart/form-data"


@dataclass(frozen=True)
class FormField:
    name: str
    value: str


@dataclass(frozen=True)
class FormFile:
    """A file part of a multipart body.

    Exactly one of ``data`` or ``reader`` is set. ``reader`` may be a
    binary file object, an iterable of byte chunks, or a zero-argument
    callable returning either; only the callable form can be replayed
    across retries.
    """

    field_name: str
    file_name: str
    data: Optional[bytes] = None
    reader: Optional[FileSource] = None
    content_type: str = "application/octet-stream"

    def __post_init__(self) -> None:
        if (self.data is None) == (self.reader is None):
            raise ValueError(
                f"File '{self.file_name}' needs exactly one of data or reader"
            )


@dataclass(frozen=True)
class MultipartFormData:
    """Ordered fields and files of a multipart/form-data body."""

    fields: tuple[FormField, ...] = field(default_factory=tuple)
    files: tuple[FormFile, ...] = field(default_factory=tuple)

    def add_field(self, name: str, value: str) -> "MultipartFormData":
        return MultipartFormData(
            fields=(*self.fields, FormField(name=name, value=value)),
            files=self.files,
        )

    def add_file(
        self,
        field_name: str,
        file_name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> "MultipartFormData":
        return MultipartFormData(
            fields=self.fields,
            files=(
                *self.files,
                FormFile(
                    field_name=field_name,
                    file_name=file_name,
                    data=data,
                    content_type=content_type,
                ),
            ),
        )

    def add_file_reader(
        self,
        field_name: str,
        file_name: str,
        reader: FileSource,
        content_type: str = "application/octet-stream",
    ) -> "MultipartFormData":
        return MultipartFormData(
            fields=self.fields,
            files=(
                *self.files,
                FormFile(
                    field_name=field_name,
                    file_name=file_name,
                    reader=reader,
                    content_type=content_type,
                ),
            ),
        )

    @property
    def is_replayable(self) -> bool:
        return all(
            f.data is not None or callable(f.reader) for f in self.files
        )
