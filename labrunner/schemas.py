"""Pydantic schemas for the orchestration wire protocol.

Every frame travels as one JSON text message holding a ``[key, payload]``
pair. Each key has its own frame class so dispatch can switch on the frame
type instead of looking handlers up by string.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_serializer,
    model_validator,
)


class FrameKey(str, Enum):
    """Protocol keys understood by the client."""

    INIT = "order/init"
    REPORT = "order/report"
    PROXY_REQUEST = "order/proxyReq"
    PROXY_RESPONSE = "order/proxyRes"


class ReportAction(str, Enum):
    """Actions carried by report events."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    PASS = "pass"
    PENDING = "pending"
    FAIL = "fail"
    TIMEOUT = "timeout"
    END_ALL = "endAll"


class FrameDecodeError(Exception):
    """Raised when an inbound frame cannot be decoded."""

    pass


class UnknownFrameKeyError(FrameDecodeError):
    """Raised when an inbound frame carries a key with no frame type."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown frame key <{key}>")


# --- Payloads ---


class ReportEvent(BaseModel):
    """One log line or test outcome reported by the server.

    ``action`` stays a plain string, or None when missing, so malformed and
    unrecognized events still reach the report sink without failing the
    rest of their batch.
    """

    action: str | None = None
    info: Any = None

    @model_validator(mode="before")
    @classmethod
    def _wrap_non_object(cls, data: Any) -> Any:
        if not isinstance(data, (dict, cls)):
            return {"action": None, "info": data}
        return data

    @field_validator("action", mode="before")
    @classmethod
    def _coerce_action(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class ProxyRequest(BaseModel):
    """HTTP request the server wants relayed to the local asset server."""

    path: str
    headers: dict[str, Any] = Field(default_factory=dict)


class ProxyResponse(BaseModel):
    """Relayed HTTP response, or a 500 describing a local request failure."""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    status_code: int = Field(..., alias="statusCode")
    headers: dict[str, Any] | None = None
    body: bytes | str = b""

    @field_validator("body", mode="before")
    @classmethod
    def _decode_buffer(cls, value: Any) -> Any:
        if isinstance(value, dict) and value.get("type") == "Buffer":
            return bytes(value.get("data") or [])
        if isinstance(value, bytearray):
            return bytes(value)
        return value

    @field_serializer("body")
    def _encode_buffer(self, body: bytes | str) -> Any:
        # Binary bodies use the Node buffer layout the server expects
        if isinstance(body, bytes):
            return {"type": "Buffer", "data": list(body)}
        return body

    @model_serializer(mode="wrap")
    def _omit_missing_headers(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        if data.get("headers") is None:
            data.pop("headers", None)
        return data


# --- Frames ---


class InitFrame(BaseModel):
    """Handshake sent once the connection is open."""

    key: Literal[FrameKey.INIT] = FrameKey.INIT
    payload: dict[str, Any]


class ReportFrame(BaseModel):
    """Batch of report events."""

    key: Literal[FrameKey.REPORT] = FrameKey.REPORT
    payload: list[ReportEvent]


class ProxyRequestFrame(BaseModel):
    """Server asks the client to fetch a local asset."""

    key: Literal[FrameKey.PROXY_REQUEST] = FrameKey.PROXY_REQUEST
    payload: ProxyRequest


class ProxyResponseFrame(BaseModel):
    """Client answer to a proxy request."""

    key: Literal[FrameKey.PROXY_RESPONSE] = FrameKey.PROXY_RESPONSE
    payload: ProxyResponse


Frame = Union[InitFrame, ReportFrame, ProxyRequestFrame, ProxyResponseFrame]

_FRAME_TYPES: dict[FrameKey, type[BaseModel]] = {
    FrameKey.INIT: InitFrame,
    FrameKey.REPORT: ReportFrame,
    FrameKey.PROXY_REQUEST: ProxyRequestFrame,
    FrameKey.PROXY_RESPONSE: ProxyResponseFrame,
}


def encode_frame(frame: Frame) -> str:
    """Serialize a frame to the ``[key, payload]`` JSON text message."""
    data = frame.model_dump(mode="json", by_alias=True)
    return json.dumps([frame.key.value, data["payload"]])


def decode_frame(raw: str | bytes) -> Frame:
    """Parse a text message into its typed frame.

    Raises:
        UnknownFrameKeyError: If the key has no frame type.
        FrameDecodeError: If the message is not a valid ``[key, payload]`` pair.
    """
    try:
        packet = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FrameDecodeError(f"Frame is not valid JSON: {exc}") from exc

    if not isinstance(packet, list) or len(packet) != 2 or not isinstance(packet[0], str):
        raise FrameDecodeError("Frame must be a [key, payload] pair")

    key, payload = packet
    try:
        frame_key = FrameKey(key)
    except ValueError:
        raise UnknownFrameKeyError(key) from None

    try:
        return _FRAME_TYPES[frame_key](payload=payload)
    except ValidationError as exc:
        raise FrameDecodeError(f"Invalid payload for <{key}>: {exc}") from exc
