"""Wire schema for the pixel map websocket protocol.

Every frame is a JSON object tagged by ``type``:

- ``snapshot`` (server -> client): ``gridMeters`` plus the full cell list,
  sent once as the first message of each connection.
- ``paint`` (client -> server): candidate pixels to place or erase.
- ``pixels`` (server -> every client): the changes a ``paint`` batch applied.

Envelopes are validated as a discriminated union. Entries inside ``pixels``
arrays are validated one at a time so a bad entry never sinks its batch. Older
clients sent ``playerName`` and ``ts``; both are accepted as aliases.
"""

from __future__ import annotations

import json
import math
from typing import Annotated, Any, Iterable, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, TypeAdapter, ValidationError, field_validator

from ..grid.cells import CandidatePixel, CellRecord, utc_now_iso

MESSAGE_TYPES = ("snapshot", "paint", "pixels")


class ProtocolError(ValueError):
    def __init__(self, message: str, *, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class MalformedMessageError(ProtocolError):
    pass


class UnknownMessageError(ProtocolError):
    pass


class MessageSchemaError(ProtocolError):
    pass


def _floor_index(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("cell index must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("cell index must be finite")
    return math.floor(value)


class PaintPixel(BaseModel):
    """One candidate entry of a ``paint`` batch."""

    model_config = ConfigDict(extra="ignore")

    i: int
    j: int
    color: StrictStr = Field(min_length=1)
    ownerName: StrictStr = Field(min_length=1, validation_alias=AliasChoices("ownerName", "playerName"))

    @field_validator("i", "j", mode="before")
    @classmethod
    def _normalize_index(cls, value: Any) -> int:
        return _floor_index(value)

    def to_candidate(self) -> CandidatePixel:
        return CandidatePixel(i=self.i, j=self.j, color=self.color, owner_name=self.ownerName)


class WireCellRecord(PaintPixel):
    timestamp: Optional[StrictStr] = Field(default=None, validation_alias=AliasChoices("timestamp", "ts"))

    def to_record(self) -> CellRecord:
        return CellRecord(
            i=self.i,
            j=self.j,
            color=self.color,
            owner_name=self.ownerName,
            timestamp=self.timestamp or utc_now_iso(),
        )


class SnapshotMessage(BaseModel):
    type: Literal["snapshot"]
    gridMeters: Any = None
    pixels: list[Any] = Field(default_factory=list)


class PaintMessage(BaseModel):
    type: Literal["paint"]
    pixels: list[Any]


class PixelsMessage(BaseModel):
    type: Literal["pixels"]
    pixels: list[Any]


Message = Annotated[Union[SnapshotMessage, PaintMessage, PixelsMessage], Field(discriminator="type")]
_MESSAGE_ADAPTER: TypeAdapter[Any] = TypeAdapter(Message)


def parse_message(raw: Union[str, bytes]) -> Union[SnapshotMessage, PaintMessage, PixelsMessage]:
    """Decode and validate one frame, raising a :class:`ProtocolError` subclass."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as exc:
        raise MalformedMessageError(f"invalid JSON frame: {exc}", error_code="malformed_json") from exc
    if not isinstance(payload, dict):
        raise MalformedMessageError("frame is not a JSON object", error_code="not_an_object")
    tag = payload.get("type")
    if tag not in MESSAGE_TYPES:
        raise UnknownMessageError(f"unknown message type: {tag!r}", error_code="unknown_type")
    try:
        return _MESSAGE_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise MessageSchemaError(
            f"invalid {tag} message: {exc.error_count()} error(s)",
            error_code="schema_violation",
        ) from exc


def parse_candidates(entries: Iterable[Any]) -> list[CandidatePixel]:
    out: list[CandidatePixel] = []
    for entry in entries:
        try:
            out.append(PaintPixel.model_validate(entry).to_candidate())
        except ValidationError:
            continue
    return out


def parse_records(entries: Iterable[Any]) -> list[CellRecord]:
    out: list[CellRecord] = []
    for entry in entries:
        try:
            out.append(WireCellRecord.model_validate(entry).to_record())
        except ValidationError:
            continue
    return out


def snapshot_message(grid_meters: float, records: Iterable[CellRecord]) -> dict[str, Any]:
    return {
        "type": "snapshot",
        "gridMeters": grid_meters,
        "pixels": [record.as_wire() for record in records],
    }


def paint_message(candidates: Iterable[CandidatePixel]) -> dict[str, Any]:
    return {"type": "paint", "pixels": [candidate.as_wire() for candidate in candidates]}


def pixels_message(records: Iterable[CellRecord]) -> dict[str, Any]:
    return {"type": "pixels", "pixels": [record.as_wire() for record in records]}


def encode_message(message: dict[str, Any]) -> str:
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False)
