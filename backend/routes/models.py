"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field

from velvet_rope.models import Attendee, DjConfig, VenueConfig


class CheckConnectionBody(BaseModel):
    provider_url: str
    api_key: str = ""
    provider_format: str = "anthropic"


class RosterBody(BaseModel):
    """Either raw CSV text or already-structured attendees."""

    csv: str | None = None
    attendees: list[Attendee] | None = None
    limit: int | None = Field(None, ge=1)


class ExpressionSample(BaseModel):
    timestamp: float = 0.0
    expressions: dict[str, float]


class BiometricsBody(BaseModel):
    attendee_id: str
    samples: list[ExpressionSample] = []
    duration_ms: int | None = Field(None, ge=0)


class SyntheticVettingBody(BaseModel):
    ms_per_word: int | None = Field(None, ge=0)


class GuestListBody(BaseModel):
    capacity: int | None = Field(None, ge=0)


class EventBody(BaseModel):
    venue: VenueConfig
    dj: DjConfig


class SpeechBody(BaseModel):
    text: str = ""
    voice: str = ""
