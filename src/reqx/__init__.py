from ._client import ReqxClient
from ._config import ClientConfig, OAuth1Config
from ._request_builder import MultipartFormBuilder, RequestBuilder
from ._services import RequestExecutor
from ._utils import RetryPolicy, TransportErrorKind, classify_transport_error, sign
from ._utils._multipart import MultipartStream, encode
from .models import (
    BodyNotReplayableError,
    ContentType,
    FormField,
    FormFile,
    InvalidBodyError,
    MaxRetriesExceededError,
    Method,
    MultipartFormData,
    MultipartWriteError,
    ReqxError,
    Response,
    SigningError,
)

__all__ = [
    "BodyNotReplayableError",
    "classify_transport_error",
    "ClientConfig",
    "ContentType",
    "encode",
    "FormField",
    "FormFile",
    "InvalidBodyError",
    "MaxRetriesExceededError",
    "Method",
    "MultipartFormBuilder",
    "MultipartFormData",
    "MultipartStream",
    "MultipartWriteError",
    "OAuth1Config",
    "RequestBuilder",
    "RequestExecutor",
    "ReqxClient",
    "ReqxError",
    "Response",
    "RetryPolicy",
    "SigningError",
    "sign",
    "TransportErrorKind",
]
