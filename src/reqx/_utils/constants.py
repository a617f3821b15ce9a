# Headers
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_USER_AGENT = "User-Agent"

# Environment variables
ENV_BASE_URL = "REQX_BASE_URL"
ENV_TIMEOUT = "REQX_TIMEOUT"
ENV_MAX_RETRIES = "REQX_MAX_RETRIES"
ENV_BACKOFF_MS = "REQX_BACKOFF_MS"

# Defaults
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_MS = 1000

# OAuth1
OAUTH_SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"

USER_AGENT = "reqx-python/0.1.0"
