from logging import getLogger
from typing import Optional, Union

from httpx import AsyncBaseTransport, AsyncClient, BaseTransport, Client

from ._config import ClientConfig
from ._request_builder import RequestBuilder
from ._services._request_executor import RequestExecutor
from ._utils._logs import setup_logging
from ._utils._sanitize import sanitize_headers
from ._utils._ssl_context import get_httpx_client_kwargs
from .models.request import Method


class ReqxClient:
    """Entry point for building and sending requests.

    The client owns one sync and one async ``httpx`` client and a frozen
    :class:`ClientConfig`; both are safe to share between threads and tasks
    issuing requests concurrently.

    Examples:
        ```python
        from reqx import ClientConfig, ReqxClient

        config = (
            ClientConfig(base_url="https://api.example.com")
            .with_bearer_auth("token")
            .with_retry(max_retries=2, backoff_ms=500)
        )

        with ReqxClient(config) as client:
            response = client.get("/items").query_param("page", "2").do()
        ```
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        debug: bool = False,
        transport: Optional[BaseTransport] = None,
        async_transport: Optional[AsyncBaseTransport] = None,
    ) -> None:
        self._config = config if config is not None else ClientConfig.from_env()

        setup_logging(debug)
        self._logger = getLogger("reqx")

        self._logger.debug("CONFIG:")
        self._logger.debug(
            f"{self._config.model_dump(exclude={'headers'})} "
            f"headers={sanitize_headers(self._config.headers)}\n"
        )

        client_kwargs = get_httpx_client_kwargs(self._config.timeout)
        self._client = Client(**client_kwargs, transport=transport)
        self._client_async = AsyncClient(**client_kwargs, transport=async_transport)

        self._executor = RequestExecutor(
            self._config.retry, self._client, self._client_async
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def request(self, method: Union[Method, str], path: str = "") -> RequestBuilder:
        return RequestBuilder(self, method, path)

    def get(self, path: str) -> RequestBuilder:
        return self.request(Method.GET, path)

    def post(self, path: str) -> RequestBuilder:
        return self.request(Method.POST, path)

    def put(self, path: str) -> RequestBuilder:
        return self.request(Method.PUT, path)

    def delete(self, path: str) -> RequestBuilder:
        return self.request(Method.DELETE, path)

    def patch(self, path: str) -> RequestBuilder:
        return self.request(Method.PATCH, path)

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._client_async.aclose()

    def __enter__(self) -> "ReqxClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> "ReqxClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
