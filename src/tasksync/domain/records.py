"""
Canonical task records and the immutable view over them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping


def freeze_fields(fields: Mapping[str, object]) -> Mapping[str, object]:
    """Return a read-only copy of ``fields`` that keeps insertion order."""

    return MappingProxyType(dict(fields))


@dataclass(frozen=True, slots=True, kw_only=True)
class CanonicalRecord:
    """One task, independent of the wire shape it arrived in.

    ``revision`` is local to the store and never leaves the process.
    ``correlation_token`` is bookkeeping for bridging a provisional record to its
    confirmation and does not take part in equality.
    """

    identity: str
    fields: Mapping[str, object] = field(default_factory=dict[str, object])
    provisional: bool = False
    revision: int = 0
    correlation_token: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("Record identity must be a non-empty string")
        if self.revision < 0:
            raise ValueError("Record revision must be non-negative")
        object.__setattr__(self, "fields", freeze_fields(self.fields))

    def with_fields(self, fields: Mapping[str, object], *, bump: bool = True) -> CanonicalRecord:
        return replace(
            self,
            fields=fields,
            revision=self.revision + 1 if bump else self.revision,
        )


@dataclass(frozen=True, slots=True)
class View:
    """Ordered snapshot of the reconciled collection, unique by identity."""

    records: tuple[CanonicalRecord, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for record in self.records:
            if record.identity in seen:
                raise ValueError(f"Duplicate identity in view: {record.identity}")
            seen.add(record.identity)

    @classmethod
    def empty(cls) -> View:
        return cls()

    def __iter__(self) -> Iterator[CanonicalRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, identity: object) -> bool:
        return any(record.identity == identity for record in self.records)

    @property
    def identities(self) -> tuple[str, ...]:
        return tuple(record.identity for record in self.records)

    @property
    def provisional(self) -> tuple[CanonicalRecord, ...]:
        return tuple(record for record in self.records if record.provisional)

    @property
    def confirmed(self) -> tuple[CanonicalRecord, ...]:
        return tuple(record for record in self.records if not record.provisional)

    def get(self, identity: str) -> CanonicalRecord | None:
        for record in self.records:
            if record.identity == identity:
                return record
        return None
