import socket
import time
from unittest.mock import patch

import anyio
import httpx
import pytest
from pytest_httpx import HTTPXMock

from reqx import ClientConfig, MaxRetriesExceededError, ReqxClient, RetryPolicy


def dns_error() -> httpx.ConnectError:
    error = httpx.ConnectError("[Errno -2] Name or service not known")
    error.__cause__ = socket.gaierror(-2, "Name or service not known")
    return error


class TestRequestExecutor:
    class TestRetry:
        def test_first_attempt_success(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(
                url=f"{base_url}/endpoint", status_code=200, json={"test": "test"}
            )

            with patch("time.sleep") as mock_sleep:
                response = client.get("/endpoint").do_raw()

            assert response.status_code == 200
            assert response.json() == {"test": "test"}
            mock_sleep.assert_not_called()

        def test_server_error_is_retried_with_linear_backoff(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=500)
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=503)
            httpx_mock.add_response(
                url=f"{base_url}/endpoint", status_code=200, json={"test": "success"}
            )

            with patch("time.sleep") as mock_sleep:
                response = client.get("/endpoint").do_raw()

            assert response.status_code == 200
            assert response.json() == {"test": "success"}
            assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

        def test_429_is_retried(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=429)
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=200)

            with patch("time.sleep") as mock_sleep:
                response = client.get("/endpoint").do_raw()

            assert response.status_code == 200
            mock_sleep.assert_called_once_with(1.0)

        def test_404_is_returned_without_retry(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(
                url=f"{base_url}/endpoint", status_code=404, json={"message": "nope"}
            )

            with patch("time.sleep") as mock_sleep:
                response = client.get("/endpoint").do_raw()

            assert response.status_code == 404
            assert response.is_error
            assert len(httpx_mock.get_requests()) == 1
            mock_sleep.assert_not_called()

        def test_retryable_status_exhausts_budget(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            for _ in range(3):
                httpx_mock.add_response(
                    url=f"{base_url}/endpoint", status_code=429, text="slow down"
                )

            with patch("time.sleep") as mock_sleep:
                with pytest.raises(MaxRetriesExceededError) as exc_info:
                    client.get("/endpoint").do_raw()

            assert exc_info.value.attempts == 3
            assert exc_info.value.response is not None
            assert exc_info.value.response.status_code == 429
            assert exc_info.value.response.body == b"slow down"
            assert len(httpx_mock.get_requests()) == 3
            assert mock_sleep.call_count == 2

        def test_always_timing_out_makes_n_plus_one_attempts(
            self, httpx_mock: HTTPXMock, client: ReqxClient
        ):
            for _ in range(3):
                httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

            with patch("time.sleep") as mock_sleep:
                with pytest.raises(httpx.ReadTimeout):
                    client.get("/endpoint").do_raw()

            assert len(httpx_mock.get_requests()) == 3
            assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

        def test_dns_failure_is_retried(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_exception(dns_error())
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=200)

            with patch("time.sleep"):
                response = client.get("/endpoint").do_raw()

            assert response.status_code == 200
            assert len(httpx_mock.get_requests()) == 2

        def test_terminal_transport_error_surfaces_on_first_attempt(
            self, httpx_mock: HTTPXMock, client: ReqxClient
        ):
            httpx_mock.add_exception(httpx.ConnectError("connection refused"))

            with patch("time.sleep") as mock_sleep:
                with pytest.raises(httpx.ConnectError, match="connection refused"):
                    client.get("/endpoint").do_raw()

            assert len(httpx_mock.get_requests()) == 1
            mock_sleep.assert_not_called()

        def test_malformed_url_surfaces_as_itself(self, httpx_mock: HTTPXMock):
            config = ClientConfig(
                base_url="https://test.example.com:notaport",
                retry=RetryPolicy(max_retries=3, backoff_ms=1000),
            )

            with ReqxClient(config) as client, patch("time.sleep") as mock_sleep:
                with pytest.raises(httpx.InvalidURL):
                    client.get("/endpoint").do_raw()

            assert httpx_mock.get_requests() == []
            mock_sleep.assert_not_called()

        def test_timeout_on_final_attempt_is_raised_not_max_retries(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=503)
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=503)
            httpx_mock.add_exception(httpx.ConnectTimeout("connect timed out"))

            with patch("time.sleep"):
                with pytest.raises(httpx.ConnectTimeout):
                    client.get("/endpoint").do_raw()

        def test_response_on_final_attempt_is_max_retries(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_exception(httpx.ConnectTimeout("connect timed out"))
            httpx_mock.add_exception(httpx.ConnectTimeout("connect timed out"))
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=502)

            with patch("time.sleep"):
                with pytest.raises(MaxRetriesExceededError) as exc_info:
                    client.get("/endpoint").do_raw()

            assert exc_info.value.response.status_code == 502

        def test_no_retries_configured(self, httpx_mock: HTTPXMock, base_url: str):
            config = ClientConfig(
                base_url=base_url, retry=RetryPolicy(max_retries=0, backoff_ms=1000)
            )
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=500)

            with ReqxClient(config) as client, patch("time.sleep") as mock_sleep:
                with pytest.raises(MaxRetriesExceededError) as exc_info:
                    client.get("/endpoint").do_raw()

            assert exc_info.value.attempts == 1
            mock_sleep.assert_not_called()

        def test_retry_logs_warning(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str, caplog
        ):
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=500)
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=200)

            with patch("time.sleep"):
                client.get("/endpoint").do_raw()

            assert any("Retrying" in record.message for record in caplog.records)

        def test_custom_headers_are_sent_on_every_attempt(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=500)
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=200)

            with patch("time.sleep"):
                client.get("/endpoint").header("X-Custom-Header", "value").do_raw()

            requests = httpx_mock.get_requests()
            assert len(requests) == 2
            for request in requests:
                assert request.headers["X-Custom-Header"] == "value"

    class TestStreaming:
        def test_stream_is_returned_unread(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(
                url=f"{base_url}/download", status_code=200, content=b"payload"
            )

            response = client.get("/download").do_stream()

            assert response.stream is not None
            assert response.body == b""
            assert b"".join(response.iter_bytes()) == b"payload"
            assert response.stream.is_closed

        def test_stream_read_buffers_body(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(
                url=f"{base_url}/download", status_code=200, content=b"payload"
            )

            response = client.get("/download").do_stream()

            assert response.read() == b"payload"
            assert response.stream is None

        def test_retryable_stream_is_released_before_retry(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(url=f"{base_url}/download", status_code=503)
            httpx_mock.add_response(
                url=f"{base_url}/download", status_code=200, content=b"payload"
            )

            with patch("time.sleep"):
                response = client.get("/download").do_stream()

            assert response.status_code == 200
            assert response.read() == b"payload"

        def test_exhausted_stream_is_released(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            for _ in range(3):
                httpx_mock.add_response(url=f"{base_url}/download", status_code=500)

            with patch("time.sleep"):
                with pytest.raises(MaxRetriesExceededError) as exc_info:
                    client.get("/download").do_stream()

            assert exc_info.value.response.stream is None

    class TestAsync:
        @pytest.mark.anyio
        async def test_simple_request_async(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(
                url=f"{base_url}/endpoint", status_code=200, json={"test": "test"}
            )

            response = await client.get("/endpoint").do_raw_async()

            assert response.status_code == 200
            assert response.json() == {"test": "test"}

        @pytest.mark.anyio
        async def test_retry_async(self, httpx_mock: HTTPXMock, base_url: str):
            config = ClientConfig(
                base_url=base_url, retry=RetryPolicy(max_retries=2, backoff_ms=0)
            )
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=500)
            httpx_mock.add_exception(httpx.ReadTimeout("timed out"))
            httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=200)

            async with ReqxClient(config) as client:
                response = await client.get("/endpoint").do_raw_async()

            assert response.status_code == 200
            assert len(httpx_mock.get_requests()) == 3

        @pytest.mark.anyio
        async def test_max_retries_exceeded_async(
            self, httpx_mock: HTTPXMock, base_url: str
        ):
            config = ClientConfig(
                base_url=base_url, retry=RetryPolicy(max_retries=1, backoff_ms=0)
            )
            for _ in range(2):
                httpx_mock.add_response(url=f"{base_url}/endpoint", status_code=429)

            async with ReqxClient(config) as client:
                with pytest.raises(MaxRetriesExceededError) as exc_info:
                    await client.get("/endpoint").do_raw_async()

            assert exc_info.value.attempts == 2

        @pytest.mark.anyio
        async def test_stream_async(
            self, httpx_mock: HTTPXMock, client: ReqxClient, base_url: str
        ):
            httpx_mock.add_response(
                url=f"{base_url}/download", status_code=200, content=b"payload"
            )

            response = await client.get("/download").do_stream_async()

            chunks = [chunk async for chunk in response.aiter_bytes()]
            assert b"".join(chunks) == b"payload"

        @pytest.mark.anyio
        async def test_failed_attempt_releases_multipart_body_off_the_event_loop(
            self, base_url: str
        ):
            class SlowReader:
                def read(self, size: int = -1) -> bytes:
                    time.sleep(0.5)
                    return b"x"

                def close(self) -> None:
                    pass

            def handler(request: httpx.Request) -> httpx.Response:
                raise httpx.ConnectError("connection refused", request=request)

            config = ClientConfig(base_url=base_url, retry=RetryPolicy(max_retries=0))
            lags: list[float] = []

            async def ticker() -> None:
                while True:
                    started = anyio.current_time()
                    await anyio.sleep(0.01)
                    lags.append(anyio.current_time() - started)

            async with ReqxClient(
                config, async_transport=httpx.MockTransport(handler)
            ) as client:
                async with anyio.create_task_group() as tg:
                    tg.start_soon(ticker)
                    with pytest.raises(httpx.ConnectError):
                        await (
                            client.post("/upload")
                            .multipart_form_body()
                            .add_file_reader("f", "f.bin", SlowReader)
                            .do_raw_async()
                        )
                    tg.cancel_scope.cancel()

            assert lags
            assert max(lags) < 0.3
