import os
import ssl
from typing import Any, Optional

import certifi

from .constants import HEADER_USER_AGENT, USER_AGENT


def expand_path(path: Optional[str]) -> Optional[str]:
    """Expand environment variables and user home directory in path."""
    if not path:
        return path
    # Expand environment variables like $HOME
    path = os.path.expandvars(path)
    # Expand user home directory ~
    path = os.path.expanduser(path)
    return path


def create_ssl_context() -> ssl.SSLContext:
    ssl_cert_file = expand_path(os.environ.get("SSL_CERT_FILE"))
    requests_ca_bundle = expand_path(os.environ.get("REQUESTS_CA_BUNDLE"))
    ssl_cert_dir = expand_path(os.environ.get("SSL_CERT_DIR"))

    return ssl.create_default_context(
        cafile=ssl_cert_file or requests_ca_bundle or certifi.where(),
        capath=ssl_cert_dir,
    )


def get_httpx_client_kwargs(timeout: float) -> dict[str, Any]:
    """Keyword arguments shared by the sync and async ``httpx`` clients."""
    return {
        "verify": create_ssl_context(),
        "timeout": timeout,
        "follow_redirects": True,
        "headers": {HEADER_USER_AGENT: USER_AGENT},
    }
