import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure local source package (src/reqx) is importable before tests collect
_PROJECT_ROOT: Path = Path(__file__).resolve().parents[1]
_SRC_PATH: Path = _PROJECT_ROOT / "src"
if _SRC_PATH.exists():
    sys.path.insert(0, str(_SRC_PATH))

from reqx import ClientConfig, ReqxClient  # noqa: E402
from reqx._utils._retry import RetryPolicy  # noqa: E402


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clean environment variables before each test."""
    for name in ("REQX_BASE_URL", "REQX_TIMEOUT", "REQX_MAX_RETRIES", "REQX_BACKOFF_MS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_url() -> str:
    return "https://test.example.com"


@pytest.fixture
def config(base_url: str) -> ClientConfig:
    return ClientConfig(
        base_url=base_url,
        retry=RetryPolicy(max_retries=2, backoff_ms=1000),
    )


@pytest.fixture
def client(config: ClientConfig) -> Generator[ReqxClient, None, None]:
    with ReqxClient(config) as reqx_client:
        yield reqx_client
