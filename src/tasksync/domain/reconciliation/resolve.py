"""Identity resolution between incoming records and the current view.

Matching policy:
- exact string equality of identities, against confirmed records only
- a caller-supplied correlation token, against the provisional record that
  issued it; this is the only provisional -> confirmed bridge
- anything else is a new entity (no matching on field content)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .contracts import MatchKind, NewEntityResolution, ResolvedEntityResolution

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tasksync.domain.records import CanonicalRecord, View

    from .contracts import IdentityResolution


def resolve_identity(
    record: CanonicalRecord,
    view: View,
    *,
    correlation_token: str | None = None,
    pending_tokens: Mapping[str, str] | None = None,
) -> IdentityResolution:
    """Decide whether ``record`` denotes an entity already present in ``view``.

    ``pending_tokens`` maps correlation tokens of unconfirmed creations to the
    provisional identity holding them.
    """

    existing = view.get(record.identity)
    if existing is not None and not existing.provisional:
        return ResolvedEntityResolution(
            target=existing,
            match_kind=MatchKind.EXACT,
            reason="identity_match",
        )

    if correlation_token is not None and pending_tokens:
        provisional_identity = pending_tokens.get(correlation_token)
        if provisional_identity is not None:
            target = view.get(provisional_identity)
            if target is not None and target.provisional:
                return ResolvedEntityResolution(
                    target=target,
                    match_kind=MatchKind.CORRELATED,
                    reason="correlation_token",
                )

    if correlation_token is None:
        return NewEntityResolution(reason="no_identity_match")
    return NewEntityResolution(reason="no_pending_correlation")
