"""Record normalization for heterogeneous task payloads.

Responsibilities of this stage:
- classify a raw payload into one explicit shape before reading anything from it
- resolve the identifier in a fixed order (primary field, then legacy field)
- pass unknown attributes through untouched
- avoid side effects; normalizing a canonical record returns an equal record
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, cast

from tasksync.domain.records import CanonicalRecord

from .errors import MalformedPayload

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True, slots=True, kw_only=True)
class PayloadShape:
    """Field names the normalizer looks for on the wire."""

    primary_id_field: str = "id"
    legacy_id_field: str = "_id"
    envelope_field: str = "task"
    collection_field: str = "tasks"
    correlation_field: str = "correlationToken"

    @property
    def reserved_fields(self) -> frozenset[str]:
        return frozenset({self.primary_id_field, self.legacy_id_field, self.correlation_field})


DEFAULT_SHAPE = PayloadShape()


class PayloadKind(StrEnum):
    CANONICAL = "canonical"
    RECORD = "record"
    ENVELOPE = "envelope"
    COLLECTION = "collection"


def classify_payload(raw: object, *, shape: PayloadShape = DEFAULT_SHAPE) -> PayloadKind:
    """Decide which of the supported shapes ``raw`` has."""

    if isinstance(raw, CanonicalRecord):
        return PayloadKind.CANONICAL
    if isinstance(raw, list | tuple):
        return PayloadKind.COLLECTION
    if not isinstance(raw, Mapping):
        raise MalformedPayload(
            f"Unsupported payload type: {type(raw).__name__}",
            payload=raw,
        )

    mapping = cast(Mapping[str, object], raw)
    if _has_identifier(mapping, shape):
        return PayloadKind.RECORD
    if isinstance(mapping.get(shape.envelope_field), Mapping):
        return PayloadKind.ENVELOPE
    if isinstance(mapping.get(shape.collection_field), list | tuple):
        return PayloadKind.COLLECTION
    raise MalformedPayload(
        f"Payload has neither {shape.primary_id_field!r} nor {shape.legacy_id_field!r}",
        payload=raw,
    )


def normalize_record(raw: object, *, shape: PayloadShape = DEFAULT_SHAPE) -> CanonicalRecord:
    """Normalize a single record payload (direct, envelope-wrapped or canonical)."""

    kind = classify_payload(raw, shape=shape)
    match kind:
        case PayloadKind.CANONICAL:
            return cast(CanonicalRecord, raw)
        case PayloadKind.RECORD:
            return _record_from_mapping(cast(Mapping[str, object], raw), shape)
        case PayloadKind.ENVELOPE:
            envelope = cast(Mapping[str, object], raw)
            inner = _require_record_mapping(envelope[shape.envelope_field], shape)
            if shape.correlation_field not in inner and shape.correlation_field in envelope:
                inner = {**inner, shape.correlation_field: envelope[shape.correlation_field]}
            return _record_from_mapping(inner, shape)
        case PayloadKind.COLLECTION:
            raise MalformedPayload("Expected a single record, got a collection", payload=raw)


def iter_records(
    raw: object,
    *,
    shape: PayloadShape = DEFAULT_SHAPE,
) -> Iterator[CanonicalRecord]:
    """Lazily normalize a collection payload; a single record yields once.

    Items are normalized as they are consumed, so a malformed item surfaces only
    when iteration reaches it.
    """

    kind = classify_payload(raw, shape=shape)
    if kind is not PayloadKind.COLLECTION:
        yield normalize_record(raw, shape=shape)
        return

    if isinstance(raw, Mapping):
        items = cast(Mapping[str, object], raw)[shape.collection_field]
    else:
        items = raw
    for item in cast(list[object] | tuple[object, ...], items):
        yield normalize_record(item, shape=shape)


def normalize_identity(raw: object, *, shape: PayloadShape = DEFAULT_SHAPE) -> str:
    """Extract only the identity, as needed for delete events."""

    if isinstance(raw, str | int) and not isinstance(raw, bool):
        identity = _coerce_identifier(raw)
        if identity is None:
            raise MalformedPayload("Blank identity", payload=raw)
        return identity
    return normalize_record(raw, shape=shape).identity


def _record_from_mapping(mapping: Mapping[str, object], shape: PayloadShape) -> CanonicalRecord:
    identity = _resolve_identifier(mapping, shape)
    if identity is None:
        raise MalformedPayload(
            f"Payload has neither {shape.primary_id_field!r} nor {shape.legacy_id_field!r}",
            payload=mapping,
        )

    token = mapping.get(shape.correlation_field)
    reserved = shape.reserved_fields
    fields = {name: value for name, value in mapping.items() if name not in reserved}
    return CanonicalRecord(
        identity=identity,
        fields=fields,
        correlation_token=token if isinstance(token, str) and token else None,
    )


def _require_record_mapping(value: object, shape: PayloadShape) -> Mapping[str, object]:
    mapping = cast(Mapping[str, object], value)
    if not _has_identifier(mapping, shape):
        raise MalformedPayload(
            f"Envelope {shape.envelope_field!r} carries no identifier",
            payload=value,
        )
    return mapping


def _has_identifier(mapping: Mapping[str, object], shape: PayloadShape) -> bool:
    return _resolve_identifier(mapping, shape) is not None


def _resolve_identifier(mapping: Mapping[str, object], shape: PayloadShape) -> str | None:
    for name in (shape.primary_id_field, shape.legacy_id_field):
        identity = _coerce_identifier(mapping.get(name))
        if identity is not None:
            return identity
    return None


def _coerce_identifier(value: object) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None
