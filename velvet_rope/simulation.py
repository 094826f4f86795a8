"""Deterministic fallback simulation.

Produces a complete SimulationResult from a roster and a round count without
any external call. Used whenever the generator is unavailable or its output
fails validation.

Model:
  * The roster is cut into contiguous groups of max(2, ceil(n / 3)) members.
    Each group gets a topic/output built from its first members' interests,
    skills and industry, and a cohesion of 60 + U[0, 30) fixed for the run.
  * Every agent walks from an initial position to a target position inside
    its group's band. Progress p = min(1, (r + 1) / max(3, N * 0.6)), so all
    agents reach their targets by round N * 0.6. A small sin/cos jitter keeps
    movement from looking mechanical.
  * Narrative text comes from a fixed bank keyed by progress tier.
  * Mood cycles by round; energy falls and satisfaction rises linearly with
    a little noise, both clamped to [0, 100].

The random source is explicit: pass a seed for reproducible output.
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass

from velvet_rope.models import (
    AgentState,
    EnrichedProfile,
    Group,
    Position,
    SimulationEvent,
    SimulationResult,
    SimulationRound,
)

MOODS = ["excited", "curious", "engaged", "focused", "energized"]

JITTER = 0.03

NARRATIVE_BANK: dict[str, list[str]] = {
    "early": [
        "Round {round}: Name tags go on and the room starts to sort itself. "
        "Small clusters form around shared interests while the icebreaker does its work.",
        "Round {round}: The first introductions happen near the bar. "
        "People drift toward familiar industries before the braver ones cross the floor.",
    ],
    "mid": [
        "Round {round}: Conversations deepen. Groups are forming around complementary "
        "skills and the energy in the room is at its peak.",
        "Round {round}: Whiteboards fill up. Each group has found its topic and ideas "
        "bounce between members faster than anyone can write them down.",
    ],
    "late": [
        "Round {round}: The room settles into productive focus. Groups polish what "
        "they have built and start comparing notes with their neighbours.",
        "Round {round}: Final pitches are rehearsed in corners. The crowd is tired "
        "but satisfied with what each group has produced.",
    ],
}


def group_size(roster_size: int) -> int:
    return max(2, math.ceil(roster_size / 3))


def interpolation_progress(round_index: int, total_rounds: int) -> float:
    """Fraction of the walk from initial to target completed at round_index (0-based)."""
    return min(1.0, (round_index + 1) / max(3, total_rounds * 0.6))


def narrative_tier(round_index: int, total_rounds: int) -> str:
    fraction = (round_index + 1) / total_rounds
    if fraction <= 1 / 3:
        return "early"
    if fraction <= 2 / 3:
        return "mid"
    return "late"


def target_position(group_index: int, member_index: int) -> tuple[float, float]:
    """Groups tile the floor in diagonal bands; members line up inside their band."""
    x = (group_index * 0.3 + 0.1 + member_index * 0.05) % 1
    y = 0.2 + group_index * 0.25
    return x, y


def entrance_position(index: int) -> tuple[float, float]:
    """Queue positions along the entrance, ten to a row."""
    return 0.05 + (index % 10) * 0.085, 0.9 - (index // 10) * 0.05


def _first(items: Sequence[str], default: str) -> str:
    return items[0] if items else default


@dataclass
class _Placement:
    profile: EnrichedProfile
    group: Group
    start: tuple[float, float]
    target: tuple[float, float]


class FallbackSimulator:
    """Procedural stand-in for the generated simulation.

    Args:
        seed:    Seed for jitter, cohesion and noise. None draws from entropy.
        scatter: Start agents at random points in [0.05, 0.9]² instead of the
                 entrance queue.
    """

    def __init__(self, seed: int | None = None, scatter: bool = False) -> None:
        self._rng = random.Random(seed)
        self._scatter = scatter

    def build_groups(self, roster: Sequence[EnrichedProfile]) -> list[Group]:
        size = group_size(len(roster))
        groups: list[Group] = []
        for g, start in enumerate(range(0, len(roster), size)):
            members = roster[start:start + size]
            first = members[0]
            second = members[1] if len(members) > 1 else None
            topic_a = _first(first.parsed_interests, first.industry or "AI applications")
            if second is not None:
                topic_b = _first(second.parsed_interests, second.industry or "innovation")
            else:
                topic_b = "innovation"
            groups.append(Group(
                id=f"g{g + 1}",
                member_ids=[m.id for m in members],
                topic=f"Exploring {topic_a} and {topic_b}",
                output="A concept combining " + ", ".join(
                    _first(m.parsed_skills, m.industry or "fresh thinking") for m in members
                ),
                cohesion=60 + self._rng.randrange(30),
            ))
        return groups

    def _place(self, roster: Sequence[EnrichedProfile], groups: list[Group]) -> list[_Placement]:
        size = group_size(len(roster))
        placements = []
        for idx, profile in enumerate(roster):
            g, m = divmod(idx, size)
            if self._scatter:
                start = (self._rng.uniform(0.05, 0.9), self._rng.uniform(0.05, 0.9))
            else:
                start = entrance_position(idx)
            placements.append(_Placement(profile, groups[g], start, target_position(g, m)))
        return placements

    def _agent_state(self, idx: int, placement: _Placement, r: int, total: int) -> AgentState:
        p = interpolation_progress(r, total)
        (sx, sy), (tx, ty) = placement.start, placement.target
        phase = r + idx
        x = sx + (tx - sx) * p + math.sin(phase) * JITTER
        y = sy + (ty - sy) * p + math.cos(phase * 1.3) * JITTER
        return AgentState(
            attendee_id=placement.profile.id,
            position=Position(x=x, y=y),
            current_group_id=placement.group.id,
            mood=MOODS[r % len(MOODS)],
            energy_level=80 - r * 3 + self._rng.randrange(10),
            satisfaction=50 + r * 8 + self._rng.randrange(10),
        )

    def _events(self, r: int, total: int, groups: list[Group]) -> list[SimulationEvent]:
        if r == 0:
            return [
                SimulationEvent(
                    type="group_formed",
                    description=f"{g.topic} draws {len(g.member_ids)} people together",
                    involved_agent_ids=list(g.member_ids),
                )
                for g in groups
            ]
        if r == total - 1:
            return [
                SimulationEvent(
                    type="output_produced",
                    description=g.output,
                    involved_agent_ids=list(g.member_ids),
                )
                for g in groups
            ]
        return [
            SimulationEvent(
                type="agent_moved",
                description=f"Group {g.id} tightens its circle in round {r + 1}",
                involved_agent_ids=list(g.member_ids),
            )
            for g in groups
        ]

    def run(
        self,
        roster: Sequence[EnrichedProfile],
        rounds: int,
        venue_name: str = "",
    ) -> SimulationResult:
        """Generate all rounds for `roster`."""
        if not roster:
            raise ValueError("Cannot simulate an empty roster")
        if rounds < 1:
            raise ValueError(f"Round count must be at least 1, got {rounds}")

        groups = self.build_groups(roster)
        placements = self._place(roster, groups)

        sim_rounds: list[SimulationRound] = []
        for r in range(rounds):
            tier = narrative_tier(r, rounds)
            template = NARRATIVE_BANK[tier][r % len(NARRATIVE_BANK[tier])]
            narrative = template.format(round=r + 1)
            if venue_name and r == 0:
                narrative = f"{narrative} The doors of {venue_name} close behind the last guest."
            sim_rounds.append(SimulationRound(
                round_number=r + 1,
                agent_states=[
                    self._agent_state(idx, pl, r, rounds) for idx, pl in enumerate(placements)
                ],
                groups=groups,
                narrative=narrative,
                events=self._events(r, rounds, groups),
            ))

        industries = ", ".join(p.industry or "unlisted fields" for p in roster[:3])
        return SimulationResult(
            rounds=sim_rounds,
            final_groups=groups,
            aggregated_output=(
                f"The event produced {len(groups)} collaborative groups. "
                f"Attendees explored intersections of {industries} and more, "
                "turning cross-industry conversations into concrete concepts."
            ),
            total_rounds=rounds,
            source="fallback",
        )
