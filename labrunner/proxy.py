"""HTTP proxy bridge between the orchestration server and the local asset server."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from labrunner.schemas import ProxyRequest, ProxyResponse

logger = logging.getLogger(__name__)


def declared_length(headers: Mapping[str, str]) -> int | None:
    """Parse ``content-length`` as a base-10 integer, or None if absent or malformed."""
    value = headers.get("content-length")
    if value is None:
        return None
    try:
        length = int(value, 10)
    except ValueError:
        logger.debug("Malformed content-length <%s>", value)
        return None
    return length if length >= 0 else None


def _outbound_headers(headers: dict[str, Any]) -> dict[str, str]:
    """Flatten multi-valued headers into strings."""
    flat = {}
    for name, value in headers.items():
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        flat[name] = str(value)
    return flat


async def read_body(response: httpx.Response) -> bytes:
    """Accumulate the raw response body.

    The buffer is pre-sized from ``content-length``; it grows when the header
    is missing, malformed or smaller than the data, and is trimmed to the
    bytes actually received.
    """
    buffer = bytearray(declared_length(response.headers) or 0)
    offset = 0

    async for chunk in response.aiter_raw():
        buffer[offset:offset + len(chunk)] = chunk
        offset += len(chunk)

    del buffer[offset:]
    return bytes(buffer)


class ProxyBridge:
    """Fetches proxied paths from the local asset server.

    Every call to :meth:`handle` produces exactly one response, a 500 when
    the local request fails.
    """

    def __init__(self, host: str, port: int, client: httpx.AsyncClient | None = None):
        self.host = host
        self.port = port
        self._client = client or httpx.AsyncClient()

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        path = request.path if request.path.startswith("/") else f"/{request.path}"
        url = f"{self.base_url}{path}"

        try:
            async with self._client.stream(
                "GET", url, headers=_outbound_headers(request.headers)
            ) as response:
                body = await read_body(response)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            logger.warning("Proxy error <%s>", e)
            return ProxyResponse(
                path=request.path,
                status_code=500,
                body=str(e) or e.__class__.__name__,
            )

        return ProxyResponse(
            path=request.path,
            status_code=response.status_code,
            headers=dict(response.headers.items()),
            body=body,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
