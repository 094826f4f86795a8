"""Core domain models.

Every pipeline stage and the stage store operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
Fields are snake_case; the camelCase names used by the external generator
are accepted as aliases so its JSON can be validated directly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Stage = Literal[
    "upload",
    "profiles",
    "pitches",
    "bouncer",
    "guest-list",
    "venue",
    "party",
]

STAGE_ORDER: list[str] = [
    "upload", "profiles", "pitches", "bouncer",
    "guest-list", "venue", "party",
]

STAGE_LABELS: dict[str, str] = {
    "upload": "The Line",
    "profiles": "Dossiers",
    "pitches": "The Plea",
    "bouncer": "The Bouncer",
    "guest-list": "The List",
    "venue": "The Venue",
    "party": "The Floor",
}

ExpressionCategory = Literal[
    "neutral", "happy", "sad", "angry", "fearful", "disgusted", "surprised",
]

# Fixed enumeration order; dominant-category ties resolve to the earliest entry.
EXPRESSION_CATEGORIES: list[str] = [
    "neutral", "happy", "sad", "angry", "fearful", "disgusted", "surprised",
]

PitchTone = Literal["confident", "humble", "humorous", "passionate", "analytical"]

TONES: list[str] = ["confident", "humble", "humorous", "passionate", "analytical"]

EventType = Literal[
    "group_formed",
    "group_dissolved",
    "agent_moved",
    "output_produced",
    "conflict",
    "breakthrough",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class Record(BaseModel):
    """Immutable base for every pipeline artifact."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# ---------------------------------------------------------------------------
# Stage 1: roster + enrichment
# ---------------------------------------------------------------------------

class Attendee(Record):
    """A raw applicant record as uploaded. Never mutated."""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    company: str = ""
    title: str = ""
    industry: str = ""
    years_experience: int = 0
    skills: str = ""  # ';'-joined
    interests: str = ""  # ';'-joined
    linkedin_url: str = ""
    bio: str = ""
    connection_strength: Literal["cold", "warm", "hot"] = "cold"
    last_interaction: str = ""
    deal_value: int = 0
    event_history: str = ""  # ';'-joined
    personality_type: str = ""
    network_size: int = 0
    influence_score: int = 0
    notes: str = ""

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.id


class EnrichedProfile(Attendee):
    """An attendee plus derived and generated fields."""

    parsed_skills: list[str] = Field(default_factory=list)
    parsed_interests: list[str] = Field(default_factory=list)
    parsed_event_history: list[str] = Field(default_factory=list)
    avatar_url: str = ""
    profile_summary: str = ""
    unique_value: str = ""
    potential_contributions: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Stage 2: pitches
# ---------------------------------------------------------------------------

class Pitch(Record):
    attendee_id: str
    pitch_text: str
    pitch_tone: PitchTone
    key_arguments: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Stage 3: biometric vetting
# ---------------------------------------------------------------------------

class ExpressionSnapshot(Record):
    """One 250 ms sample of the expression vector."""

    timestamp: float
    expressions: dict[ExpressionCategory, float]
    dominant: ExpressionCategory
    signal: float = Field(ge=-1.0, le=1.0)

    @field_validator("expressions")
    @classmethod
    def _probabilities_in_range(cls, v: dict[str, float]) -> dict[str, float]:
        for category, prob in v.items():
            if not 0.0 <= prob <= 1.0:
                raise ValueError(f"{category} probability {prob} outside [0, 1]")
        return v


class BiometricResult(Record):
    attendee_id: str
    snapshots: list[ExpressionSnapshot] = Field(default_factory=list)
    score: int = Field(ge=0, le=100)
    peak_positive: float = 0.0
    peak_negative: float = 0.0
    engagement: int = 50
    duration_ms: int = 0
    generated_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Stage 4: guest list
# ---------------------------------------------------------------------------

class GuestListEntry(Record):
    """A ranked applicant. rank and admitted are derived by the ranker."""

    profile: EnrichedProfile
    biometric: BiometricResult
    rank: int = Field(ge=1)
    admitted: bool


# ---------------------------------------------------------------------------
# Stage 5: venue + DJ
# ---------------------------------------------------------------------------

class VenueConfig(Record):
    name: str
    type: Literal["conference", "workshop", "networking", "hackathon", "roundtable"]
    capacity: int = Field(ge=0)
    description: str = ""


class DjConfig(Record):
    theme: str
    goal: str
    dynamics: Literal["competitive", "collaborative", "speed-dating", "open-floor", "structured"]
    rounds: int = Field(ge=1)
    rules: list[str] = Field(default_factory=list)
    icebreaker: str = ""


# ---------------------------------------------------------------------------
# Stage 6: simulation
# ---------------------------------------------------------------------------

class Position(Record):
    x: float
    y: float

    @field_validator("x", "y")
    @classmethod
    def _clamp_unit(cls, v: float) -> float:
        return _clamp(v, 0.0, 1.0)


class AgentState(Record):
    attendee_id: str
    position: Position
    current_group_id: str | None = None
    mood: str = "neutral"
    energy_level: int = 50
    satisfaction: int = 50

    @field_validator("attendee_id", "current_group_id", mode="before")
    @classmethod
    def _coerce_id(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v

    @field_validator("energy_level", "satisfaction", mode="before")
    @classmethod
    def _clamp_percent(cls, v: object) -> object:
        if isinstance(v, (int, float)):
            return int(round(_clamp(v, 0, 100)))
        return v


class Group(Record):
    id: str
    member_ids: list[str] = Field(min_length=1)
    topic: str = ""
    output: str = ""
    cohesion: int = 50

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v

    @field_validator("member_ids", mode="before")
    @classmethod
    def _coerce_members(cls, v: object) -> object:
        if isinstance(v, list):
            return [str(m) if isinstance(m, int) else m for m in v]
        return v

    @field_validator("cohesion", mode="before")
    @classmethod
    def _clamp_cohesion(cls, v: object) -> object:
        if isinstance(v, (int, float)):
            return int(round(_clamp(v, 0, 100)))
        return v


class SimulationEvent(Record):
    type: EventType
    description: str = ""
    involved_agent_ids: list[str] = Field(default_factory=list)

    @field_validator("involved_agent_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, v: object) -> object:
        if isinstance(v, list):
            return [str(m) if isinstance(m, int) else m for m in v]
        return v


class SimulationRound(Record):
    round_number: int = Field(ge=1)
    agent_states: list[AgentState]
    groups: list[Group] = Field(default_factory=list)
    narrative: str = ""
    events: list[SimulationEvent] = Field(default_factory=list)


class SimulationResult(Record):
    rounds: list[SimulationRound]
    final_groups: list[Group] = Field(default_factory=list)
    aggregated_output: str = ""
    total_rounds: int = Field(ge=0)
    source: Literal["generated", "fallback"] = "generated"
    generated_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------

class PipelineState(Record):
    """Everything the pipeline has accumulated so far.

    Created empty at "upload"; the stage store is the only writer.
    """

    stage: Stage = "upload"
    raw_attendees: list[Attendee] = Field(default_factory=list)
    enriched_profiles: list[EnrichedProfile] = Field(default_factory=list)
    pitches: list[Pitch] = Field(default_factory=list)
    biometric_results: list[BiometricResult] = Field(default_factory=list)
    guest_list: list[GuestListEntry] = Field(default_factory=list)
    venue_config: VenueConfig | None = None
    dj_config: DjConfig | None = None
    simulation_result: SimulationResult | None = None

    @property
    def admitted(self) -> list[EnrichedProfile]:
        return [e.profile for e in self.guest_list if e.admitted]
