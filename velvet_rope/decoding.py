"""Permissive decoding of generator output.

The generator is asked for bare JSON but often wraps it in prose or
markdown fences. Decoders pull out the first well-formed JSON value of the
expected kind, validate its shape, and return a tagged result:

    Ok(value)   - usable output
    Err(reason) - anything else; the caller substitutes a fallback

Decoders never raise on bad input.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Collection
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from velvet_rope.models import SimulationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    reason: str


Decoded = Ok[T] | Err


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def extract_json(text: str, kind: Literal["array", "object"]) -> Decoded[Any]:
    """Return the first well-formed JSON array/object found in `text`."""
    if not text or not text.strip():
        return Err("empty response")
    expected = list if kind == "array" else dict
    opener = "[" if kind == "array" else "{"
    cleaned = _strip_fences(text)

    try:
        data = json.loads(cleaned)
        if isinstance(data, expected):
            return Ok(data)
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    start = cleaned.find(opener)
    while start != -1:
        try:
            data, _ = decoder.raw_decode(cleaned, start)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(data, expected):
                return Ok(data)
        start = cleaned.find(opener, start + 1)
    return Err(f"no JSON {kind} in response")


# ---------------------------------------------------------------------------
# Batch drafts (what the generator returns per attendee)
# ---------------------------------------------------------------------------

class _Draft(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="ignore")


def _as_text_list(v: object) -> object:
    if isinstance(v, list):
        return [str(item) for item in v if str(item).strip()]
    return v


class ProfileDraft(_Draft):
    id: str
    profile_summary: str | None = None
    unique_value: str | None = None
    potential_contributions: list[str] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v

    @field_validator("potential_contributions", mode="before")
    @classmethod
    def _text_list(cls, v: object) -> object:
        return _as_text_list(v)


class PitchDraft(_Draft):
    attendee_id: str
    pitch_text: str
    pitch_tone: str | None = None
    key_arguments: list[str] | None = None

    @field_validator("attendee_id", mode="before")
    @classmethod
    def _coerce_id(cls, v: object) -> object:
        return str(v) if isinstance(v, int) else v

    @field_validator("key_arguments", mode="before")
    @classmethod
    def _text_list(cls, v: object) -> object:
        return _as_text_list(v)


D = TypeVar("D", bound=_Draft)


def _decode_batch(text: str, model: type[D], key: str) -> Decoded[dict[str, D]]:
    extracted = extract_json(text, "array")
    if isinstance(extracted, Err):
        return extracted
    drafts: dict[str, D] = {}
    for item in extracted.value:
        try:
            draft = model.model_validate(item)
        except ValidationError as e:
            logger.debug("skipping malformed %s entry: %s", model.__name__, e)
            continue
        drafts.setdefault(getattr(draft, key), draft)
    if not drafts:
        return Err(f"no valid {model.__name__} entries")
    return Ok(drafts)


def decode_profiles(text: str) -> Decoded[dict[str, ProfileDraft]]:
    """Profile drafts keyed by attendee id."""
    return _decode_batch(text, ProfileDraft, "id")


def decode_pitches(text: str) -> Decoded[dict[str, PitchDraft]]:
    """Pitch drafts keyed by attendee id."""
    return _decode_batch(text, PitchDraft, "attendee_id")


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def decode_simulation(text: str, roster_ids: Collection[str]) -> Decoded[SimulationResult]:
    """Validate a generated simulation against the admitted roster.

    Every round must list every roster member exactly once, rounds must be
    numbered 1..N, and groups may only reference roster ids.
    """
    extracted = extract_json(text, "object")
    if isinstance(extracted, Err):
        return extracted
    data = dict(extracted.value)
    rounds = data.get("rounds")
    if not isinstance(rounds, list) or not rounds:
        return Err("simulation has no rounds")
    data.setdefault("totalRounds", len(rounds))
    data.pop("source", None)
    try:
        result = SimulationResult.model_validate({**data, "source": "generated"})
    except ValidationError as e:
        return Err(f"simulation shape invalid: {e.error_count()} errors")

    expected = set(roster_ids)
    for idx, rnd in enumerate(result.rounds):
        if rnd.round_number != idx + 1:
            return Err(f"round {idx + 1} is numbered {rnd.round_number}")
        ids = [a.attendee_id for a in rnd.agent_states]
        if len(ids) != len(set(ids)) or set(ids) != expected:
            return Err(f"round {rnd.round_number} does not cover the roster exactly")
        for group in rnd.groups:
            if not set(group.member_ids) <= expected:
                return Err(f"group {group.id} references unknown attendees")
    for group in result.final_groups:
        if not set(group.member_ids) <= expected:
            return Err(f"final group {group.id} references unknown attendees")
    return Ok(result.model_copy(update={"total_rounds": len(result.rounds)}))
