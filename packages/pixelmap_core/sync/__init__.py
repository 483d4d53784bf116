"""Websocket sync protocol: wire schema, effects and server handlers."""

from .effects import Broadcast, Effect, PersistSnapshot, RequestRender, SendMessage
from .handlers import PaintOutcome, handle_client_frame, handle_connect, handle_paint
from .messages import (
    MalformedMessageError,
    MessageSchemaError,
    PaintMessage,
    PixelsMessage,
    ProtocolError,
    SnapshotMessage,
    UnknownMessageError,
    encode_message,
    paint_message,
    parse_message,
    parse_records,
    pixels_message,
    snapshot_message,
)

__all__ = [
    "Broadcast",
    "Effect",
    "PersistSnapshot",
    "RequestRender",
    "SendMessage",
    "PaintOutcome",
    "handle_client_frame",
    "handle_connect",
    "handle_paint",
    "MalformedMessageError",
    "MessageSchemaError",
    "PaintMessage",
    "PixelsMessage",
    "ProtocolError",
    "SnapshotMessage",
    "UnknownMessageError",
    "encode_message",
    "paint_message",
    "parse_message",
    "parse_records",
    "pixels_message",
    "snapshot_message",
]
