"""Sanitization utilities for values that end up in logs."""

from typing import Mapping

_SENSITIVE_HEADERS = frozenset(
    {"authorization", "proxy-authorization", "cookie", "set-cookie"}
)
_MASK = "***"


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy ``headers`` with credential-bearing values masked.

    Examples:
        >>> sanitize_headers({"Authorization": "Bearer abc", "Accept": "*/*"})
        {'Authorization': '***', 'Accept': '*/*'}
    """
    return {
        key: _MASK if key.lower() in _SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }
