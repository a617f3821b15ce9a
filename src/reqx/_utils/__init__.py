from ._body import Body, resolve_body
from ._logs import setup_logging
from ._oauth1 import sign
from ._request_spec import RequestSpec
from ._retry import RetryPolicy, TransportErrorKind, classify_transport_error
from ._sanitize import sanitize_headers
from ._url import build_url

__all__ = [
    "Body",
    "build_url",
    "classify_transport_error",
    "resolve_body",
    "RequestSpec",
    "RetryPolicy",
    "sanitize_headers",
    "setup_logging",
    "sign",
    "TransportErrorKind",
]
