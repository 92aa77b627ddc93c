"""Connection manager for the orchestration server."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from labrunner import __version__
from labrunner.config import SessionConfig
from labrunner.dispatcher import Dispatcher
from labrunner.proxy import ProxyBridge
from labrunner.repo import detect_repo
from labrunner.reporter import ReportSink, SessionOutcome
from labrunner.schemas import Frame, InitFrame, encode_frame
from labrunner.server import AssetServer

logger = logging.getLogger(__name__)

SERVER_UNAVAILABLE = "Server is not available, please check your config or try again later."
SERVER_INTERRUPTED = "Server is interrupted, please try again later."


class Client:
    """Owns the single websocket connection of a session.

    There is no reconnect: once the connection fails or closes, :meth:`run`
    returns without an outcome.
    """

    def __init__(
        self,
        config: SessionConfig,
        sink: ReportSink,
        bridge: ProxyBridge | None = None,
        connect: Callable[[str], Any] = websockets.connect,
    ):
        self.config = config
        self.sink = sink
        self._owns_bridge = bridge is None
        self.bridge = bridge or ProxyBridge(config.client_host, config.client_port)
        self._connect = connect
        self._socket: Any = None
        self._tasks: set[asyncio.Task] = set()
        self.dispatcher = Dispatcher(sink, self.bridge, self.send, self._spawn)

    @property
    def url(self) -> str:
        return f"ws://{self.config.server_host}:{self.config.server_port}"

    async def run(self) -> SessionOutcome | None:
        """Connect, send the handshake and dispatch frames until the run ends."""
        try:
            async with self._connect(self.url) as socket:
                self._socket = socket
                await self._on_open()
                async for message in socket:
                    outcome = self.dispatcher.on_frame(message)
                    if outcome is not None:
                        return outcome
        except ConnectionClosed:
            logger.warning(SERVER_INTERRUPTED)
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
            logger.warning("%s (%s)", SERVER_UNAVAILABLE, e)
        else:
            logger.warning(SERVER_INTERRUPTED)
        finally:
            self._socket = None
            await self._cancel_pending()
            if self._owns_bridge:
                await self.bridge.aclose()
        return None

    async def send(self, frame: Frame) -> None:
        if self._socket is None:
            logger.warning("Dropping <%s> frame, connection is closed", frame.key.value)
            return
        try:
            await self._socket.send(encode_frame(frame))
        except ConnectionClosed:
            logger.warning("Failed to send <%s> frame, connection is closed", frame.key.value)

    async def _on_open(self) -> None:
        logger.debug("Connected to server <%s>", self.url)
        repo = await detect_repo(self.config.runner)
        logger.debug("Found repo <%s>", repo)
        await self.send(InitFrame(payload=self.config.init_data(repo, __version__)))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Proxy relay failed", exc_info=task.exception())

    async def _cancel_pending(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


async def run_session(config: SessionConfig, sink: ReportSink | None = None) -> SessionOutcome | None:
    """Run one full session: optional asset server, then the client.

    When an asset server is started, the port it actually bound replaces
    ``clientPort`` in the configuration sent to the server.
    """
    server = None
    if config.client_root:
        server = AssetServer(config.client_host, config.client_port, config.client_root)
        port = await server.start()
        config = config.model_copy(update={"client_port": port})

    sink = sink or ReportSink(verbose=config.verbose)
    bridge = ProxyBridge(config.client_host, config.client_port)
    try:
        return await Client(config, sink, bridge).run()
    finally:
        await bridge.aclose()
        if server is not None:
            await server.stop()
