"""Stage store: the pipeline's single persisted aggregate.

All state lives in one JSON blob under a configurable data directory:

    {base}/
      velvet-rope-pipeline.json   ← the whole PipelineState

Mutations go through apply(action). The reducer is pure (old state +
action → new state) and enforces the stage order:

    upload → profiles → pitches → bouncer → guest-list → venue → party

The stage never moves backwards; Reset is the only way back to "upload".
Every mutation is persisted immediately. A missing or unreadable blob loads
as the initial empty state; a failed write is logged and ignored.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ValidationError

from velvet_rope.models import (
    STAGE_ORDER,
    Attendee,
    BiometricResult,
    DjConfig,
    EnrichedProfile,
    GuestListEntry,
    Pitch,
    PipelineState,
    SimulationResult,
    Stage,
    VenueConfig,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "velvet-rope-pipeline"


class StageTransitionError(ValueError):
    """Raised when an action is not allowed in the current stage."""


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class SetRawAttendees(BaseModel):
    kind: Literal["set_raw_attendees"] = "set_raw_attendees"
    attendees: list[Attendee]


class SetEnrichedProfiles(BaseModel):
    kind: Literal["set_enriched_profiles"] = "set_enriched_profiles"
    profiles: list[EnrichedProfile]


class SetPitches(BaseModel):
    kind: Literal["set_pitches"] = "set_pitches"
    pitches: list[Pitch]


class AddBiometricResult(BaseModel):
    kind: Literal["add_biometric_result"] = "add_biometric_result"
    result: BiometricResult


class SetGuestList(BaseModel):
    kind: Literal["set_guest_list"] = "set_guest_list"
    entries: list[GuestListEntry]


class SetEventConfig(BaseModel):
    kind: Literal["set_event_config"] = "set_event_config"
    venue: VenueConfig
    dj: DjConfig


class SetSimulationResult(BaseModel):
    kind: Literal["set_simulation_result"] = "set_simulation_result"
    result: SimulationResult


class Advance(BaseModel):
    kind: Literal["advance"] = "advance"
    stage: Stage


class Reset(BaseModel):
    kind: Literal["reset"] = "reset"


Action = Union[
    SetRawAttendees,
    SetEnrichedProfiles,
    SetPitches,
    AddBiometricResult,
    SetGuestList,
    SetEventConfig,
    SetSimulationResult,
    Advance,
    Reset,
]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _stage_index(stage: str) -> int:
    return STAGE_ORDER.index(stage)


def _require_stage(state: PipelineState, *allowed: str) -> None:
    if state.stage not in allowed:
        raise StageTransitionError(
            f"Not allowed in stage {state.stage!r} (expected {', '.join(allowed)})"
        )


def _require_from(state: PipelineState, first: str) -> None:
    if _stage_index(state.stage) < _stage_index(first):
        raise StageTransitionError(f"Not allowed before stage {first!r}")


def _check_advance(state: PipelineState, target: str) -> None:
    current = _stage_index(state.stage)
    if _stage_index(target) != current + 1:
        raise StageTransitionError(
            f"Cannot move from {state.stage!r} to {target!r}; stages advance one step at a time"
        )
    if target == "profiles" and not state.raw_attendees:
        raise StageTransitionError("No attendees uploaded")
    if target == "pitches" and not state.enriched_profiles:
        raise StageTransitionError("No enriched profiles yet")
    if target == "bouncer" and not state.pitches:
        raise StageTransitionError("No pitches yet")
    if target == "guest-list" and not state.biometric_results:
        raise StageTransitionError("No one has been vetted yet")
    if target == "venue" and not state.admitted:
        raise StageTransitionError("Guest list admits no one")
    if target == "party" and (state.venue_config is None or state.dj_config is None):
        raise StageTransitionError("Venue and DJ are not configured")


def reduce(state: PipelineState, action: Action) -> PipelineState:
    """Return the state after `action`. Never mutates `state`."""
    if isinstance(action, Reset):
        return PipelineState()

    if isinstance(action, Advance):
        _check_advance(state, action.stage)
        return state.model_copy(update={"stage": action.stage})

    if isinstance(action, SetRawAttendees):
        _require_stage(state, "upload")
        return state.model_copy(update={"raw_attendees": list(action.attendees)})

    if isinstance(action, SetEnrichedProfiles):
        _require_stage(state, "profiles")
        return state.model_copy(update={"enriched_profiles": list(action.profiles)})

    if isinstance(action, SetPitches):
        _require_stage(state, "pitches")
        return state.model_copy(update={"pitches": list(action.pitches)})

    if isinstance(action, AddBiometricResult):
        _require_stage(state, "bouncer")
        attendee_id = action.result.attendee_id
        if attendee_id not in {p.attendee_id for p in state.pitches}:
            raise StageTransitionError(f"No pitch for attendee {attendee_id!r}")
        if any(r.attendee_id == attendee_id for r in state.biometric_results):
            raise StageTransitionError(f"Attendee {attendee_id!r} has already been vetted")
        return state.model_copy(
            update={"biometric_results": [*state.biometric_results, action.result]}
        )

    if isinstance(action, SetGuestList):
        _require_from(state, "guest-list")
        return state.model_copy(
            update={"guest_list": list(action.entries), "simulation_result": None}
        )

    if isinstance(action, SetEventConfig):
        _require_from(state, "venue")
        return state.model_copy(update={
            "venue_config": action.venue,
            "dj_config": action.dj,
            "simulation_result": None,
        })

    if isinstance(action, SetSimulationResult):
        _require_stage(state, "party")
        return state.model_copy(update={"simulation_result": action.result})

    raise TypeError(f"Unknown action {type(action).__name__}")


def next_stage(stage: str) -> str | None:
    idx = _stage_index(stage)
    return STAGE_ORDER[idx + 1] if idx + 1 < len(STAGE_ORDER) else None


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class StageStore:
    """Holds the current PipelineState and persists it after every mutation.

    Args:
        base_path: Data directory. None keeps the state in memory only.
    """

    def __init__(self, base_path: Path | None = None) -> None:
        self._path = base_path / f"{STORAGE_KEY}.json" if base_path is not None else None
        self._lock = threading.Lock()
        self._state = self._load()

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def path(self) -> Path | None:
        return self._path

    def apply(self, action: Action) -> PipelineState:
        """Apply one action, persist, and return the new state."""
        with self._lock:
            new_state = reduce(self._state, action)
            self._state = new_state
            self._save(new_state)
        logger.debug("applied %s → stage=%s", action.kind, new_state.stage)
        return new_state

    def reload(self) -> PipelineState:
        with self._lock:
            self._state = self._load()
            return self._state

    def _load(self) -> PipelineState:
        if self._path is None or not self._path.is_file():
            return PipelineState()
        try:
            return PipelineState.model_validate_json(self._path.read_text())
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable pipeline state %s: %s", self._path, e)
            return PipelineState()

    def _save(self, state: PipelineState) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(state.model_dump_json(indent=2))
        except OSError as e:
            logger.warning("Could not persist pipeline state to %s: %s", self._path, e)
