"""Routes inbound frames to the report sink and the proxy bridge."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Coroutine

from labrunner.proxy import ProxyBridge
from labrunner.reporter import ReportSink, SessionOutcome
from labrunner.schemas import (
    Frame,
    FrameDecodeError,
    ProxyRequest,
    ProxyRequestFrame,
    ProxyResponseFrame,
    ReportFrame,
    UnknownFrameKeyError,
    decode_frame,
)

logger = logging.getLogger(__name__)

Send = Callable[[Frame], Awaitable[None]]
Spawn = Callable[[Coroutine[Any, Any, None]], Any]


class Dispatcher:
    """Decodes frames and hands them to the matching handler.

    Report batches are handled inline. Proxy requests are handed to
    ``spawn`` so a slow backend never blocks the next frame; their
    responses may therefore be sent out of order.
    """

    def __init__(self, sink: ReportSink, bridge: ProxyBridge, send: Send, spawn: Spawn):
        self.sink = sink
        self.bridge = bridge
        self._send = send
        self._spawn = spawn

    def on_frame(self, raw: str | bytes) -> SessionOutcome | None:
        """Handle one inbound frame; returns an outcome when the run is over."""
        try:
            frame = decode_frame(raw)
        except UnknownFrameKeyError as e:
            logger.warning("Dropping frame with unknown key <%s>", e.key)
            return None
        except FrameDecodeError as e:
            logger.warning("Dropping malformed frame: %s", e)
            return None

        if isinstance(frame, ReportFrame):
            return self.sink.handle(frame.payload)
        if isinstance(frame, ProxyRequestFrame):
            self._spawn(self._relay(frame.payload))
            return None

        logger.warning("Ignoring server-bound frame <%s> received from server", frame.key.value)
        return None

    async def _relay(self, request: ProxyRequest) -> None:
        response = await self.bridge.handle(request)
        await self._send(ProxyResponseFrame(payload=response))
