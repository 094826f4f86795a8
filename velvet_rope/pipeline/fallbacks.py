"""Template fallbacks for generated profiles and pitches.

Fixed wording that still varies by attendee field, so a fully offline run
reads like a (dull) generated one.
"""

from __future__ import annotations

from datetime import datetime

from velvet_rope.decoding import PitchDraft, ProfileDraft
from velvet_rope.models import TONES, Attendee, EnrichedProfile, Pitch, utcnow
from velvet_rope.roster import avatar_url, split_list


def tone_for(index: int) -> str:
    """Round-robin tone by roster position."""
    return TONES[index % len(TONES)]


def raw_summary(a: Attendee) -> str:
    return f"{a.title} at {a.company} with {a.years_experience} years in {a.industry}"


def enrich(
    a: Attendee, draft: ProfileDraft | None = None, now: datetime | None = None
) -> EnrichedProfile:
    """Build the profile for `a`, filling anything the draft lacks from raw fields."""
    skills = split_list(a.skills)
    summary = raw_summary(a)
    profile_summary = draft.profile_summary if draft and draft.profile_summary else summary
    unique_value = draft.unique_value if draft and draft.unique_value else summary
    contributions = (
        draft.potential_contributions
        if draft and draft.potential_contributions
        else skills[:3]
    )
    return EnrichedProfile(
        **a.model_dump(),
        parsed_skills=skills,
        parsed_interests=split_list(a.interests),
        parsed_event_history=split_list(a.event_history),
        avatar_url=avatar_url(a.email or a.id),
        profile_summary=profile_summary,
        unique_value=unique_value,
        potential_contributions=contributions,
        generated_at=now or utcnow(),
    )


def fallback_pitch(p: EnrichedProfile, index: int, now: datetime | None = None) -> Pitch:
    top_skill = p.parsed_skills[0] if p.parsed_skills else "expertise"
    return Pitch(
        attendee_id=p.id,
        pitch_text=(
            f"I'm {p.name}, {p.years_experience} years in {p.industry}. "
            f"My {top_skill} isn't resume fluff, it's battle-tested. "
            "Let me in and I'll prove this event needs me."
        ),
        pitch_tone=tone_for(index),
        key_arguments=[
            p.parsed_skills[0] if p.parsed_skills else "deep expertise",
            f"{p.years_experience} years of {p.industry} experience",
            p.unique_value or f"{p.title} at {p.company}",
        ],
        generated_at=now or utcnow(),
    )


def pitch_from_draft(
    p: EnrichedProfile, index: int, draft: PitchDraft, now: datetime | None = None
) -> Pitch:
    """Accept a generated pitch, defaulting tone and arguments where missing."""
    if not draft.pitch_text.strip():
        return fallback_pitch(p, index, now)
    tone = draft.pitch_tone.lower() if draft.pitch_tone else ""
    arguments = draft.key_arguments or fallback_pitch(p, index, now).key_arguments
    return Pitch(
        attendee_id=p.id,
        pitch_text=draft.pitch_text.strip(),
        pitch_tone=tone if tone in TONES else tone_for(index),
        key_arguments=arguments,
        generated_at=now or utcnow(),
    )
