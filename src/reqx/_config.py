import base64
from os import environ as env
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from ._utils._retry import RetryPolicy
from ._utils.constants import (
    DEFAULT_BACKOFF_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    ENV_BACKOFF_MS,
    ENV_BASE_URL,
    ENV_MAX_RETRIES,
    ENV_TIMEOUT,
    HEADER_AUTHORIZATION,
)
from .models.request import ContentType


class OAuth1Config(BaseModel):
    """OAuth1 consumer and access token credentials."""

    model_config = ConfigDict(frozen=True)

    consumer_key: str
    consumer_secret: SecretStr
    access_token: str
    access_token_secret: SecretStr


class ClientConfig(BaseModel):
    """Client-wide settings shared read-only by every request.

    Instances are frozen; the ``with_*`` helpers return modified copies.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = ""
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    query_params: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    content_type: Optional[str] = None
    oauth1: Optional[OAuth1Config] = None
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Build a config from ``REQX_*`` environment variables and ``.env``."""
        load_dotenv()

        values: dict = {}
        if env.get(ENV_BASE_URL):
            values["base_url"] = env[ENV_BASE_URL]
        if env.get(ENV_TIMEOUT):
            values["timeout"] = float(env[ENV_TIMEOUT])
        values["retry"] = RetryPolicy(
            max_retries=int(env.get(ENV_MAX_RETRIES) or DEFAULT_MAX_RETRIES),
            backoff_ms=int(env.get(ENV_BACKOFF_MS) or DEFAULT_BACKOFF_MS),
        )
        values.update(overrides)
        return cls(**values)

    def with_header(self, key: str, value: str) -> "ClientConfig":
        return self.model_copy(update={"headers": {**self.headers, key: value}})

    def with_query_param(self, key: str, value: str) -> "ClientConfig":
        return self.model_copy(
            update={"query_params": {**self.query_params, key: value}}
        )

    def with_basic_auth(self, username: str, password: str) -> "ClientConfig":
        credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
        return self.with_header(HEADER_AUTHORIZATION, f"Basic {credentials}")

    def with_bearer_auth(self, token: str) -> "ClientConfig":
        return self.with_header(HEADER_AUTHORIZATION, f"Bearer {token}")

    def with_oauth1(
        self,
        consumer_key: str,
        consumer_secret: str,
        access_token: str,
        access_token_secret: str,
    ) -> "ClientConfig":
        oauth1 = OAuth1Config(
            consumer_key=consumer_key,
            consumer_secret=SecretStr(consumer_secret),
            access_token=access_token,
            access_token_secret=SecretStr(access_token_secret),
        )
        return self.model_copy(update={"oauth1": oauth1})

    def with_retry(self, max_retries: int, backoff_ms: int) -> "ClientConfig":
        return self.model_copy(
            update={"retry": RetryPolicy(max_retries=max_retries, backoff_ms=backoff_ms)}
        )

    def with_timeout(self, timeout: float) -> "ClientConfig":
        return self.model_copy(update={"timeout": timeout})

    def with_content_type(
        self, content_type: Union[ContentType, str]
    ) -> "ClientConfig":
        value = (
            content_type.value if isinstance(content_type, ContentType) else content_type
        )
        return self.model_copy(update={"content_type": value})
