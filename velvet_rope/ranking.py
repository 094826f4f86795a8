"""Guest-list ranking and capacity cut."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from velvet_rope.models import BiometricResult, EnrichedProfile, GuestListEntry
from velvet_rope.signals import NEUTRAL_SCORE


def rank(
    roster: Sequence[EnrichedProfile], scores: Mapping[str, int]
) -> list[tuple[EnrichedProfile, int]]:
    """Sort descending by score. Equal scores keep their roster order.

    Attendees without a score rank as neutral (50).
    """
    scored = [(p, scores.get(p.id, NEUTRAL_SCORE)) for p in roster]
    # sorted() is stable; only the score participates in the key
    return sorted(scored, key=lambda pair: -pair[1])


def select_admitted(
    ranked: Sequence[tuple[EnrichedProfile, BiometricResult]], capacity: int
) -> list[GuestListEntry]:
    """Flag the first `capacity` entries as admitted; rank is the 1-based position."""
    capacity = max(0, min(capacity, len(ranked)))
    return [
        GuestListEntry(profile=profile, biometric=result, rank=i + 1, admitted=i < capacity)
        for i, (profile, result) in enumerate(ranked)
    ]


def neutral_result(attendee_id: str) -> BiometricResult:
    """Placeholder for an attendee who was never vetted."""
    return BiometricResult(attendee_id=attendee_id, score=NEUTRAL_SCORE, engagement=NEUTRAL_SCORE)


def build_guest_list(
    profiles: Sequence[EnrichedProfile],
    results: Sequence[BiometricResult],
    capacity: int,
) -> list[GuestListEntry]:
    """Pair profiles with their results, rank them and apply the capacity cut."""
    by_id = {r.attendee_id: r for r in results}
    ordered = rank(profiles, {r.attendee_id: r.score for r in results})
    paired = [(p, by_id.get(p.id) or neutral_result(p.id)) for p, _ in ordered]
    return select_admitted(paired, capacity)


def recut(entries: Sequence[GuestListEntry], capacity: int) -> list[GuestListEntry]:
    """Apply a new capacity to an existing guest list without re-sorting."""
    return select_admitted([(e.profile, e.biometric) for e in entries], capacity)


def default_capacity(roster_size: int) -> int:
    return math.ceil(roster_size * 0.5)
