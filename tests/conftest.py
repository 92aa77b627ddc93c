"""Pytest configuration and fixtures for LabRunner tests."""

import pytest
from pathlib import Path
from typing import Callable

import httpx

from labrunner.config import SessionConfig
from labrunner.proxy import ProxyBridge


class ChunkedStream(httpx.AsyncByteStream):
    """Async response body delivered in fixed chunks."""

    def __init__(self, chunks: list[bytes]):
        self._chunks = chunks

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


@pytest.fixture(autouse=True)
def isolated_user_config(tmp_path: Path, monkeypatch) -> Path:
    """Point the user config file at a temporary location."""
    path = tmp_path / "user" / "config.json"
    monkeypatch.setenv("LABRUNNER_CONFIG", str(path))
    return path


@pytest.fixture
def asset_dir(tmp_path: Path) -> Path:
    """Create a directory of test assets."""
    root = tmp_path / "assets"
    root.mkdir()
    (root / "index.html").write_text("<html><body>runner</body></html>")
    (root / "spec.js").write_text("describe('a', function () {})\n")
    return root


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(
        serverHost="orchestrator.local",
        serverPort=9000,
        clientHost="127.0.0.1",
        clientPort=9998,
        clientRoot="/srv/tests",
        runner="http://127.0.0.1:9998/runner.html",
        browsers=["chrome", "firefox"],
    )


@pytest.fixture
def make_bridge() -> Callable[[Callable[[httpx.Request], httpx.Response]], ProxyBridge]:
    """Build a ProxyBridge whose local requests go to a mock handler."""

    def factory(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return ProxyBridge("127.0.0.1", 9998, client=client)

    return factory


@pytest.fixture
def chunked() -> Callable[[list[bytes]], httpx.AsyncByteStream]:
    """Factory for chunked response bodies."""
    return ChunkedStream
