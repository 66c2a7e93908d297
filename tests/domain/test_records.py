from __future__ import annotations

import pytest

from tasksync.domain.records import CanonicalRecord, View


def test_record_fields_are_read_only_copies() -> None:
    source: dict[str, object] = {"title": "Buy milk"}
    record = CanonicalRecord(identity="srv-1", fields=source)

    source["title"] = "changed"

    assert record.fields["title"] == "Buy milk"
    with pytest.raises(TypeError):
        record.fields["title"] = "again"  # type: ignore[index]


def test_record_rejects_empty_identity() -> None:
    with pytest.raises(ValueError, match="identity"):
        CanonicalRecord(identity="")


def test_record_rejects_negative_revision() -> None:
    with pytest.raises(ValueError, match="revision"):
        CanonicalRecord(identity="srv-1", revision=-1)


def test_with_fields_bumps_revision_and_keeps_identity() -> None:
    record = CanonicalRecord(identity="srv-1", fields={"title": "a"}, revision=2)

    updated = record.with_fields({"title": "b"})
    unchanged_revision = record.with_fields({"title": "c"}, bump=False)

    assert updated.identity == "srv-1"
    assert updated.revision == 3
    assert updated.fields == {"title": "b"}
    assert unchanged_revision.revision == 2


def test_correlation_token_does_not_affect_equality() -> None:
    first = CanonicalRecord(identity="srv-1", fields={"title": "a"}, correlation_token="T1")
    second = CanonicalRecord(identity="srv-1", fields={"title": "a"})

    assert first == second


def test_view_rejects_duplicate_identities() -> None:
    record = CanonicalRecord(identity="srv-1")

    with pytest.raises(ValueError, match="Duplicate"):
        View((record, CanonicalRecord(identity="srv-1", fields={"title": "other"})))


def test_view_lookup_helpers() -> None:
    confirmed = CanonicalRecord(identity="srv-1", fields={"title": "a"})
    provisional = CanonicalRecord(identity="local-1", fields={"title": "b"}, provisional=True)
    view = View((confirmed, provisional))

    assert len(view) == 2
    assert view.identities == ("srv-1", "local-1")
    assert "srv-1" in view
    assert "srv-2" not in view
    assert view.get("local-1") is provisional
    assert view.get("missing") is None
    assert view.confirmed == (confirmed,)
    assert view.provisional == (provisional,)
    assert list(View.empty()) == []
