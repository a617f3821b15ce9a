"""OAuth1 HMAC-SHA1 request signing.

Only the signature-in-header flow is supported: the signature covers the
request method, the base URL and the query parameters of the URL. Body
parameters are not part of the base string.
"""

import base64
import hashlib
import hmac
import time
import uuid
from typing import TYPE_CHECKING, Optional
from urllib.parse import parse_qsl, quote, urlsplit

from ..models.errors import SigningError
from .constants import OAUTH_SIGNATURE_METHOD, OAUTH_VERSION

if TYPE_CHECKING:
    from .._config import OAuth1Config


def percent_encode(value: str) -> str:
    """RFC 3986 encoding: everything but ``A-Z a-z 0-9 - . _ ~`` is escaped."""
    return quote(value, safe="")


def _split_url(full_url: str) -> tuple[str, dict[str, str]]:
    try:
        parts = urlsplit(full_url)
        query = parse_qsl(parts.query, keep_blank_values=True)
    except ValueError as e:
        raise SigningError(full_url, str(e)) from e

    if not parts.scheme or not parts.netloc:
        raise SigningError(full_url, "URL must be absolute")

    host = parts.netloc.rpartition("@")[2]
    base_url = f"{parts.scheme}://{host}{parts.path}"

    # first value wins for repeated keys
    query_params: dict[str, str] = {}
    for key, value in query:
        query_params.setdefault(key, value)
    return base_url, query_params


def signature_base_string(
    method: str, full_url: str, oauth_params: dict[str, str]
) -> str:
    base_url, query_params = _split_url(full_url)

    # query parameters overwrite oauth parameters of the same name
    all_params = {**oauth_params, **query_params}
    pairs = sorted(
        f"{percent_encode(key)}={percent_encode(value)}"
        for key, value in all_params.items()
    )
    param_string = "&".join(pairs)

    return "&".join(
        [
            percent_encode(method.upper()),
            percent_encode(base_url),
            percent_encode(param_string),
        ]
    )


def hmac_sha1_signature(
    base_string: str, consumer_secret: str, token_secret: str
) -> str:
    signing_key = f"{percent_encode(consumer_secret)}&{percent_encode(token_secret)}"
    digest = hmac.new(
        signing_key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def sign(
    method: str,
    full_url: str,
    credentials: "OAuth1Config",
    *,
    nonce: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """Compute the ``Authorization`` header value for a request.

    Args:
        method: HTTP method of the request.
        full_url: Absolute URL including every query parameter that will be sent.
        credentials: Consumer and access token credentials.
        nonce: Override for the random nonce. Generated per call when omitted.
        timestamp: Override for the Unix timestamp in seconds.

    Returns:
        str: The header value, ``OAuth key="value", ...`` sorted by entry.

    Raises:
        SigningError: If the URL cannot be parsed.
    """
    params = {
        "oauth_consumer_key": credentials.consumer_key,
        "oauth_nonce": nonce if nonce is not None else str(uuid.uuid4()),
        "oauth_signature_method": OAUTH_SIGNATURE_METHOD,
        "oauth_timestamp": str(timestamp if timestamp is not None else int(time.time())),
        "oauth_token": credentials.access_token,
        "oauth_version": OAUTH_VERSION,
    }

    base_string = signature_base_string(method, full_url, params)
    params["oauth_signature"] = hmac_sha1_signature(
        base_string,
        credentials.consumer_secret.get_secret_value(),
        credentials.access_token_secret.get_secret_value(),
    )

    entries = sorted(f'{key}="{percent_encode(value)}"' for key, value in params.items())
    return "OAuth " + ", ".join(entries)
