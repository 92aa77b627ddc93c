"""Local asset server exposing the test directory over HTTP."""

from __future__ import annotations

import asyncio
import errno
import logging
import random
import socket
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from labrunner import __version__

logger = logging.getLogger(__name__)

# Fallback ports tried when the configured one is taken
RETRY_PORT_MIN = 7000
RETRY_PORT_MAX = 8000  # exclusive

STARTUP_POLL_INTERVAL = 0.01  # seconds


def random_port() -> int:
    return random.randrange(RETRY_PORT_MIN, RETRY_PORT_MAX)


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a TCP socket, moving to random ports while the port is in use.

    Errors other than ``EADDRINUSE`` propagate.
    """
    family = socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)[0][0]
    while True:
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            if e.errno != errno.EADDRINUSE:
                raise
            logger.debug("Port %d is in use, will auto find another one.", port)
            port = random_port()
            continue
        return sock


def create_app(root: str | Path) -> FastAPI:
    """Create the static file app rooted at ``root``."""
    app = FastAPI(
        title="LabRunner Assets",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.mount("/", StaticFiles(directory=Path(root).resolve(), html=True), name="assets")
    return app


class AssetServer:
    """Runs :func:`create_app` under uvicorn inside the current event loop."""

    def __init__(self, host: str, port: int, root: str | Path):
        self.host = host
        self.port = port
        self.root = Path(root)
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None

    async def start(self) -> int:
        """Start serving and return the port actually bound."""
        sock = bind_socket(self.host, self.port)
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(create_app(self.root), log_level="warning")
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))

        while not self._server.started:
            if self._task.done():
                await self._task
                raise RuntimeError(f"Client server failed to start on {self.host}:{self.port}")
            await asyncio.sleep(STARTUP_POLL_INTERVAL)

        logger.debug("Start client server <%s:%d>", self.host, self.port)
        return self.port

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._server = None
        self._task = None
