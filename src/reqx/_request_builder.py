import copy
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Any, Optional, Union

from httpx import Headers
from pydantic import TypeAdapter, ValidationError

from ._utils._body import Body, StreamBody, prepare_body, resolve_body
from ._utils._oauth1 import sign
from ._utils._request_spec import RequestSpec
from ._utils._url import build_url
from ._utils.constants import HEADER_AUTHORIZATION, HEADER_CONTENT_TYPE
from .models.request import ContentType, FileSource, Method, MultipartFormData
from .models.response import Response

if TYPE_CHECKING:
    from ._client import ReqxClient

logger = getLogger("reqx")


def _value(value: Union[Method, ContentType, str]) -> str:
    return value.value if isinstance(value, (Method, ContentType)) else value


class RequestBuilder:
    """Immutable description of a request; every setter returns a new builder.

    Per-request query parameters and headers override the client defaults
    key by key. A builder can be reused and shared: executing it never
    changes it.

    Examples:
        ```python
        from reqx import ClientConfig, ReqxClient

        client = ReqxClient(ClientConfig(base_url="https://api.example.com"))

        response = (
            client.post("/items")
            .query_param("dry_run", "true")
            .header("X-Request-Id", "42")
            .body({"name": "widget"})
            .do()
        )
        ```
    """

    def __init__(
        self,
        client: "ReqxClient",
        method: Union[Method, str] = Method.GET,
        path: str = "",
    ) -> None:
        self._client = client
        self._method = _value(method).upper()
        self._path = path
        self._query_params: dict[str, str] = {}
        self._headers: dict[str, str] = {}
        self._content_type: Optional[str] = None
        self._body: Any = None

    def _copy(self, **changes: Any) -> "RequestBuilder":
        clone = copy.copy(self)
        for name, value in changes.items():
            setattr(clone, f"_{name}", value)
        return clone

    def method(self, method: Union[Method, str]) -> "RequestBuilder":
        return self._copy(method=_value(method).upper())

    def path(self, path: str) -> "RequestBuilder":
        return self._copy(path=path)

    def query_param(self, key: str, value: str) -> "RequestBuilder":
        return self._copy(query_params={**self._query_params, key: value})

    def header(self, key: str, value: str) -> "RequestBuilder":
        return self._copy(headers={**self._headers, key: value})

    def body(self, body: Any) -> "RequestBuilder":
        return self._copy(body=prepare_body(body))

    def body_reader(self, reader: FileSource) -> "RequestBuilder":
        """Send ``reader`` as-is; pass an opener callable to allow retries."""
        return self._copy(body=StreamBody(reader))

    def content_type(self, content_type: Union[ContentType, str]) -> "RequestBuilder":
        return self._copy(content_type=_value(content_type))

    def json_content_type(self) -> "RequestBuilder":
        return self.content_type(ContentType.JSON)

    def form_urlencoded_content_type(self) -> "RequestBuilder":
        return self.content_type(ContentType.FORM_URLENCODED)

    def multipart_form_content_type(self) -> "RequestBuilder":
        return self.content_type(ContentType.MULTIPART_FORM)

    def multipart_form_body(self) -> "MultipartFormBuilder":
        return MultipartFormBuilder(self)

    @property
    def effective_content_type(self) -> str:
        return (
            self._content_type
            or self._client.config.content_type
            or ContentType.JSON.value
        )

    def _resolve_body(self) -> Optional[Body]:
        return resolve_body(self._body, self.effective_content_type)

    def build_spec(
        self, body: Optional[Body] = None, *, async_mode: bool = False
    ) -> RequestSpec:
        """Assemble one attempt: URL, signature, headers, then content type."""
        config = self._client.config
        url = build_url(
            config.base_url, self._path, config.query_params, self._query_params
        )

        headers = Headers()
        if config.oauth1 is not None:
            headers[HEADER_AUTHORIZATION] = sign(self._method, url, config.oauth1)
        for key, value in config.headers.items():
            headers[key] = value
        for key, value in self._headers.items():
            headers[key] = value

        if body is None:
            return RequestSpec(method=self._method, url=url, headers=headers)

        opened = body.open(async_mode=async_mode)
        content_type = opened.content_type or self.effective_content_type
        headers[HEADER_CONTENT_TYPE] = content_type
        return RequestSpec(
            method=self._method,
            url=url,
            headers=headers,
            content_type=content_type,
            body=opened,
        )

    def _decode(
        self, response: Response, success_type: Any, error_type: Any
    ) -> None:
        target = success_type if response.is_success else error_type
        if target is None or not response.body:
            return
        try:
            value = TypeAdapter(target).validate_json(response.body)
        except ValidationError as e:
            kind = "success" if response.is_success else "error"
            logger.error(f"Failed to decode {kind} response: {e}")
            return
        if response.is_success:
            response.data = value
        else:
            response.error = value

    def do(self, success_type: Any = None, error_type: Any = None) -> Response:
        """Send the request and read the whole body.

        Args:
            success_type: Type the body of a 2xx response is decoded into
                (stored on ``Response.data``).
            error_type: Type the body of any other response is decoded into
                (stored on ``Response.error``).

        Decoding failures are logged and leave the slot empty; the response
        is returned either way.
        """
        response = self.do_raw()
        self._decode(response, success_type, error_type)
        return response

    def do_raw(self) -> Response:
        body = self._resolve_body()
        return self._client.executor.execute(partial(self.build_spec, body))

    def do_stream(self) -> Response:
        """Send the request and hand back the unread body stream.

        The caller owns the stream and must close it, or consume it with
        ``iter_bytes``/``read`` which close it when done.
        """
        body = self._resolve_body()
        return self._client.executor.execute(
            partial(self.build_spec, body), stream=True
        )

    async def do_async(
        self, success_type: Any = None, error_type: Any = None
    ) -> Response:
        response = await self.do_raw_async()
        self._decode(response, success_type, error_type)
        return response

    async def do_raw_async(self) -> Response:
        body = self._resolve_body()
        return await self._client.executor.execute_async(
            partial(self.build_spec, body, async_mode=True)
        )

    async def do_stream_async(self) -> Response:
        body = self._resolve_body()
        return await self._client.executor.execute_async(
            partial(self.build_spec, body, async_mode=True), stream=True
        )


class MultipartFormBuilder:
    """Collects the fields and files of a multipart/form-data request."""

    def __init__(
        self,
        request_builder: RequestBuilder,
        form_data: Optional[MultipartFormData] = None,
    ) -> None:
        self._request_builder = request_builder
        self._form_data = form_data or MultipartFormData()
        self._prepared = request_builder.multipart_form_content_type().body(
            self._form_data
        )

    @property
    def form_data(self) -> MultipartFormData:
        return self._form_data

    def add_field(self, name: str, value: str) -> "MultipartFormBuilder":
        return MultipartFormBuilder(
            self._request_builder, self._form_data.add_field(name, value)
        )

    def add_file(
        self,
        field_name: str,
        file_name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> "MultipartFormBuilder":
        return MultipartFormBuilder(
            self._request_builder,
            self._form_data.add_file(field_name, file_name, data, content_type),
        )

    def add_file_reader(
        self,
        field_name: str,
        file_name: str,
        reader: FileSource,
        content_type: str = "application/octet-stream",
    ) -> "MultipartFormBuilder":
        return MultipartFormBuilder(
            self._request_builder,
            self._form_data.add_file_reader(field_name, file_name, reader, content_type),
        )

    def do(self, success_type: Any = None, error_type: Any = None) -> Response:
        return self._prepared.do(success_type, error_type)

    def do_raw(self) -> Response:
        return self._prepared.do_raw()

    def do_stream(self) -> Response:
        return self._prepared.do_stream()

    async def do_async(
        self, success_type: Any = None, error_type: Any = None
    ) -> Response:
        return await self._prepared.do_async(success_type, error_type)

    async def do_raw_async(self) -> Response:
        return await self._prepared.do_raw_async()

    async def do_stream_async(self) -> Response:
        return await self._prepared.do_stream_async()
