"""Pydantic models describing push-channel frames."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Json, field_validator, model_validator

from tasksync.domain.reconciliation.contracts import PushEventKind

# event name servers use when a frame carries no explicit ``event:`` line
DEFAULT_EVENT_NAME = "message"


class PushFrame(BaseModel):
    """One decoded event-stream frame.

    Frames either name the event on their ``event:`` line, or arrive as unnamed
    messages whose JSON data wraps ``{"event": ..., "data": ...}``.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    event: PushEventKind
    data: object = None

    @field_validator("event", mode="before")
    @classmethod
    def _parse_event(cls, value: object) -> object:
        if isinstance(value, str):
            return PushEventKind.parse(value)
        return value

    @model_validator(mode="before")
    @classmethod
    def _unwrap_unnamed(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        mapping = cast(Mapping[str, object], value)
        if mapping.get("event") not in (None, DEFAULT_EVENT_NAME):
            return mapping
        inner = mapping.get("data")
        if isinstance(inner, Mapping) and "event" in inner:
            return inner
        return mapping


class _RawFrame(BaseModel):
    event: str = DEFAULT_EVENT_NAME
    data: Json[object]


def decode_frame(event_name: str | None, data: str) -> PushFrame:
    """Decode the ``event:`` name and JSON ``data:`` text of one frame."""

    raw = _RawFrame.model_validate({"event": event_name or DEFAULT_EVENT_NAME, "data": data})
    return PushFrame.model_validate({"event": raw.event, "data": raw.data})
