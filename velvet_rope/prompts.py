"""Handlebars prompt templates for the three generated artifacts.

Each template is rendered with pybars against a plain dict context. All
substitutions use triple-stash ({{{ }}}) because prompts are plain text,
not HTML.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from typing import Any

import pybars

from velvet_rope.models import Attendee, DjConfig, EnrichedProfile, VenueConfig, TONES

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def _helper_join(this, items, separator=", "):
    """{{join list "; "}} - join a list of strings."""
    return separator.join(str(i) for i in items or [])


_HELPERS: dict[str, Callable] = {
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

ENRICHMENT_PROMPT = """\
For each person below, generate a JSON array where each element has:
- "id": their id
- "profileSummary": a punchy 1-2 sentence summary of who they are and why they matter (be vivid)
- "uniqueValue": one sentence on what makes them uniquely valuable at {{{event}}}
- "potentialContributions": array of 3 specific things they could contribute

People:
{{{people}}}

Return ONLY valid JSON array, no other text."""

PITCH_PROMPT = """\
You're generating "desperate pleas to get into the party" for {{{event}}}. \
Each person is begging the bouncer to let them in. The pitches should be \
{{{min_words}}}-{{{max_words}}} words, first person, dramatic and entertaining, like someone \
literally pleading at a velvet rope outside a club. Be specific to their background.

{{#each people}}
Person {{{id}}}: {{{name}}}, {{{title}}} at {{{company}}}. {{{years}}} years in {{{industry}}}. \
Skills: {{{join skills ", "}}}. Bio: {{{bio}}}. Personality: {{{personality}}}. Tone: {{{tone}}}.

{{/each}}
Return ONLY a JSON array where each element has:
- "attendeeId": their id
- "pitchText": their plea (first person, {{{min_words}}}-{{{max_words}}} words)
- "pitchTone": one of {{{tones}}}
- "keyArguments": array of 3 short bullet points of their case

No other text, just valid JSON."""

SIMULATION_PROMPT = """\
You are a social dynamics simulation engine. Simulate an event with these parameters:

VENUE: {{{venue.name}}} ({{{venue.type}}}), capacity {{{venue.capacity}}}. {{{venue.description}}}
DJ THEME: {{{dj.theme}}}
GOAL: {{{dj.goal}}}
DYNAMICS: {{{dj.dynamics}}}
ICEBREAKER: {{{dj.icebreaker}}}
RULES: {{{join dj.rules "; "}}}

ATTENDEES ({{{count}}} agents):
{{#each agents}}
Agent "{{{name}}}" (id: {{{id}}}): {{{title}}} at {{{company}}}. Personality: {{{personality}}}. \
Skills: {{{join skills ", "}}}. Interests: {{{join interests ", "}}}. Bio: {{{summary}}}
{{/each}}

Simulate {{{dj.rounds}}} rounds of interaction. For each round, determine:
1. Who gravitates toward whom based on personality, shared interests, complementary skills
2. What groups form or dissolve
3. What each group discusses and produces toward the goal
4. Key events (breakthroughs, conflicts, unexpected connections)

Output EXACTLY this JSON structure (no other text):
{{{example}}}

Event types: group_formed, group_dissolved, agent_moved, output_produced, conflict, breakthrough.
Make positions be numbers between 0 and 1. Group members close together. \
Include ALL agents in every round's agentStates."""

_SIMULATION_EXAMPLE = {
    "rounds": [{
        "roundNumber": 1,
        "narrative": "Vivid 2-3 sentence description of what happened",
        "groups": [{
            "id": "g1", "memberIds": ["1", "3"], "topic": "what they discussed",
            "output": "what they produced", "cohesion": 75,
        }],
        "events": [{"type": "group_formed", "description": "...", "involvedAgentIds": ["1", "3"]}],
        "agentStates": [{
            "attendeeId": "1", "position": {"x": 0.3, "y": 0.7}, "currentGroupId": "g1",
            "mood": "excited", "energyLevel": 85, "satisfaction": 70,
        }],
    }],
    "finalGroups": ["..."],
    "aggregatedOutput": "Summary of everything produced toward the goal",
    "totalRounds": 1,
}

DEFAULT_EVENT = "an exclusive AI hackathon"
PITCH_WORDS = (100, 150)


# ── Builders ─────────────────────────────────────────────

def enrichment_prompt(batch: Sequence[Attendee], event: str = DEFAULT_EVENT) -> str:
    people = [
        {
            "id": a.id,
            "name": a.name,
            "title": a.title,
            "company": a.company,
            "industry": a.industry,
            "yearsExperience": a.years_experience,
            "skills": a.skills,
            "interests": a.interests,
            "bio": a.bio,
            "influenceScore": a.influence_score,
        }
        for a in batch
    ]
    return render_prompt(ENRICHMENT_PROMPT, {"event": event, "people": json.dumps(people)})


def pitch_prompt(
    batch: Sequence[tuple[EnrichedProfile, str]], event: str = DEFAULT_EVENT
) -> str:
    """Render the pitch prompt; each profile carries its assigned tone."""
    people = [
        {
            "id": p.id,
            "name": p.name,
            "title": p.title,
            "company": p.company,
            "years": p.years_experience,
            "industry": p.industry,
            "skills": p.parsed_skills,
            "bio": p.bio,
            "personality": p.personality_type,
            "tone": tone,
        }
        for p, tone in batch
    ]
    return render_prompt(PITCH_PROMPT, {
        "event": event,
        "people": people,
        "min_words": PITCH_WORDS[0],
        "max_words": PITCH_WORDS[1],
        "tones": ", ".join(f'"{t}"' for t in TONES),
    })


def simulation_prompt(
    roster: Sequence[EnrichedProfile], venue: VenueConfig, dj: DjConfig
) -> str:
    agents = [
        {
            "id": a.id,
            "name": a.name,
            "title": a.title,
            "company": a.company,
            "personality": a.personality_type,
            "skills": a.parsed_skills,
            "interests": a.parsed_interests,
            "summary": a.profile_summary,
        }
        for a in roster
    ]
    example = dict(_SIMULATION_EXAMPLE, totalRounds=dj.rounds)
    return render_prompt(SIMULATION_PROMPT, {
        "venue": venue.model_dump(),
        "dj": dj.model_dump(),
        "count": len(agents),
        "agents": agents,
        "example": json.dumps(example, indent=2),
    })
