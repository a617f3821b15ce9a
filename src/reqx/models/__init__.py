from .errors import (
    BodyNotReplayableError,
    InvalidBodyError,
    MaxRetriesExceededError,
    MultipartWriteError,
    ReqxError,
    SigningError,
)
from .request import ContentType, FormField, FormFile, Method, MultipartFormData
from .response import Response

__all__ = [
    "BodyNotReplayableError",
    "ContentType",
    "FormField",
    "FormFile",
    "InvalidBodyError",
    "MaxRetriesExceededError",
    "Method",
    "MultipartFormData",
    "MultipartWriteError",
    "ReqxError",
    "Response",
    "SigningError",
]
