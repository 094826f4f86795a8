"""Pipeline orchestrator: drives the roster through all seven stages.

Stage flow:
  1. upload      load_roster()        raw attendees in, advance to profiles
  2. profiles    enrich_profiles()    generator in batches of 5
  3. pitches     generate_pitches()   generator in batches of 3, tone round-robin
  4. bouncer     vet() / record_biometrics()   one BiometricResult per attendee
  5. guest-list  build_guest_list()   rank + capacity cut
  6. venue       configure_event()    venue + DJ, advance to party
  7. party       simulate()           whole admitted roster in one call

advance() moves one stage forward; the store refuses to move past a stage
whose artifact is missing.

Generation policy (all three generated artifacts):
  * One call per batch, no retries.
  * Unusable output for a batch (decoder Err, missing ids) → template
    fallback for exactly that batch's attendees.
  * The call itself failing (LLMError, timeout, prompt error) → fallback for
    the whole request scope. The orchestrator never fails a stage because
    the generator did.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from velvet_rope.decoding import Err, decode_pitches, decode_profiles, decode_simulation
from velvet_rope.llm import LLM
from velvet_rope.models import (
    Attendee,
    BiometricResult,
    DjConfig,
    EnrichedProfile,
    GuestListEntry,
    Pitch,
    PipelineState,
    SimulationResult,
    VenueConfig,
    utcnow,
)
from velvet_rope.prompts import DEFAULT_EVENT, enrichment_prompt, pitch_prompt, simulation_prompt
from velvet_rope.ranking import build_guest_list, default_capacity, recut
from velvet_rope.roster import RosterError
from velvet_rope.simulation import FallbackSimulator
from velvet_rope.store import (
    AddBiometricResult,
    Advance,
    Reset,
    SetEnrichedProfiles,
    SetEventConfig,
    SetGuestList,
    SetPitches,
    SetRawAttendees,
    SetSimulationResult,
    StageStore,
    StageTransitionError,
    next_stage,
)

from .bouncer import Bouncer
from .fallbacks import enrich, fallback_pitch, pitch_from_draft, tone_for

logger = logging.getLogger(__name__)

ENRICH_BATCH_SIZE = 5
PITCH_BATCH_SIZE = 3


def _batches(items: Sequence, size: int) -> list[tuple[int, Sequence]]:
    return [(start, items[start:start + size]) for start in range(0, len(items), size)]


class PipelineOrchestrator:
    """The only component that talks to both the store and the generator.

    Args:
        store:      Stage store holding the persisted pipeline state.
        llm:        Generator callable (see velvet_rope.llm.LLM).
        simulator:  Fallback simulation generator. Defaults to an unseeded one.
        bouncer:    Biometric sampler. Defaults to synthetic expressions.
        event_name: How the event is described in prompts.
        clock:      Timestamp source for generated artifacts.
    """

    def __init__(
        self,
        store: StageStore,
        llm: LLM,
        *,
        simulator: FallbackSimulator | None = None,
        bouncer: Bouncer | None = None,
        event_name: str = DEFAULT_EVENT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._llm = llm
        self._simulator = simulator or FallbackSimulator()
        self._bouncer = bouncer or Bouncer()
        self._event = event_name
        self._clock = clock

    @property
    def state(self) -> PipelineState:
        return self._store.state

    def _require_stage(self, stage: str) -> PipelineState:
        state = self._store.state
        if state.stage != stage:
            raise StageTransitionError(f"Pipeline is at {state.stage!r}, not {stage!r}")
        return state

    async def _generate(self, stage: str, build_prompt: Callable[[], str]) -> str | None:
        """One external call. Returns None on any failure (logged)."""
        try:
            prompt = build_prompt()
            return await self._llm(stage, prompt)
        except Exception as e:
            logger.warning("%s generation failed: %s", stage, e, exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Stage control
    # ------------------------------------------------------------------

    def reset(self) -> PipelineState:
        return self._store.apply(Reset())

    def advance(self) -> PipelineState:
        """Move to the next stage if its inputs exist."""
        target = next_stage(self._store.state.stage)
        if target is None:
            raise StageTransitionError("Already at the final stage")
        return self._store.apply(Advance(stage=target))

    def load_roster(self, attendees: Sequence[Attendee]) -> PipelineState:
        """Start a fresh pipeline with this roster and move to profiles."""
        if not attendees:
            raise RosterError("No valid attendees in upload")
        ids = [a.id for a in attendees]
        if len(ids) != len(set(ids)):
            raise RosterError("Attendee ids must be unique")
        self._store.apply(Reset())
        self._store.apply(SetRawAttendees(attendees=list(attendees)))
        return self._store.apply(Advance(stage="profiles"))

    # ------------------------------------------------------------------
    # Stage 2: profiles
    # ------------------------------------------------------------------

    async def enrich_profiles(self) -> list[EnrichedProfile]:
        state = self._require_stage("profiles")
        attendees = state.raw_attendees
        now = self._clock()

        profiles: list[EnrichedProfile] = []
        for start, batch in _batches(attendees, ENRICH_BATCH_SIZE):
            output = await self._generate("enrichment", lambda: enrichment_prompt(batch, self._event))
            if output is None:
                logger.warning("Using fallback profiles for all %d attendees", len(attendees))
                profiles = [enrich(a, now=now) for a in attendees]
                break
            decoded = decode_profiles(output)
            if isinstance(decoded, Err):
                logger.warning("Enrichment batch at %d unusable: %s", start, decoded.reason)
                drafts = {}
            else:
                drafts = decoded.value
            missing = [a.id for a in batch if a.id not in drafts]
            if drafts and missing:
                logger.info("Enrichment batch at %d missing ids %s", start, missing)
            profiles.extend(enrich(a, drafts.get(a.id), now) for a in batch)

        self._store.apply(SetEnrichedProfiles(profiles=profiles))
        return profiles

    # ------------------------------------------------------------------
    # Stage 3: pitches
    # ------------------------------------------------------------------

    async def generate_pitches(self) -> list[Pitch]:
        state = self._require_stage("pitches")
        profiles = state.enriched_profiles
        now = self._clock()

        pitches: list[Pitch] = []
        for start, batch in _batches(profiles, PITCH_BATCH_SIZE):
            toned = [(p, tone_for(start + i)) for i, p in enumerate(batch)]
            output = await self._generate("pitches", lambda: pitch_prompt(toned, self._event))
            if output is None:
                logger.warning("Using fallback pitches for all %d attendees", len(profiles))
                pitches = [fallback_pitch(p, i, now) for i, p in enumerate(profiles)]
                break
            decoded = decode_pitches(output)
            if isinstance(decoded, Err):
                logger.warning("Pitch batch at %d unusable: %s", start, decoded.reason)
                drafts = {}
            else:
                drafts = decoded.value
            for i, p in enumerate(batch):
                draft = drafts.get(p.id)
                if draft is None:
                    pitches.append(fallback_pitch(p, start + i, now))
                else:
                    pitches.append(pitch_from_draft(p, start + i, draft, now))

        self._store.apply(SetPitches(pitches=pitches))
        return pitches

    # ------------------------------------------------------------------
    # Stage 4: bouncer
    # ------------------------------------------------------------------

    def pending_vetting(self) -> list[Pitch]:
        """Pitches whose attendee has no BiometricResult yet, in roster order."""
        state = self._store.state
        vetted = {r.attendee_id for r in state.biometric_results}
        return [p for p in state.pitches if p.attendee_id not in vetted]

    def record_biometrics(self, result: BiometricResult) -> PipelineState:
        self._require_stage("bouncer")
        return self._store.apply(AddBiometricResult(result=result))

    async def vet(self, attendee_id: str, delivered: asyncio.Event) -> BiometricResult:
        """Sample expressions until `delivered` is set, then record the result."""
        state = self._require_stage("bouncer")
        if attendee_id not in {p.attendee_id for p in state.pitches}:
            raise StageTransitionError(f"No pitch for attendee {attendee_id!r}")
        if any(r.attendee_id == attendee_id for r in state.biometric_results):
            raise StageTransitionError(f"Attendee {attendee_id!r} has already been vetted")
        result = await self._bouncer.vet(attendee_id, delivered)
        self._store.apply(AddBiometricResult(result=result))
        return result

    async def vet_remaining(
        self, delivery: Callable[[Pitch], asyncio.Event]
    ) -> list[BiometricResult]:
        """Vet every pending attendee in turn; `delivery` signals when each pitch ends."""
        results = []
        for pitch in self.pending_vetting():
            results.append(await self.vet(pitch.attendee_id, delivery(pitch)))
        return results

    # ------------------------------------------------------------------
    # Stage 5: guest list
    # ------------------------------------------------------------------

    def build_guest_list(self, capacity: int | None = None) -> list[GuestListEntry]:
        """Rank everyone and admit the top `capacity` (default: half, rounded up).

        A capacity change on an existing list keeps its order and only moves
        the admission cut.
        """
        state = self._store.state
        if capacity is None:
            capacity = default_capacity(len(state.enriched_profiles))
        existing_ids = [e.profile.id for e in state.guest_list]
        if existing_ids and set(existing_ids) == {p.id for p in state.enriched_profiles}:
            entries = recut(state.guest_list, capacity)
        else:
            entries = build_guest_list(
                state.enriched_profiles, state.biometric_results, capacity
            )
        self._store.apply(SetGuestList(entries=entries))
        return entries

    # ------------------------------------------------------------------
    # Stage 6: venue
    # ------------------------------------------------------------------

    def configure_event(self, venue: VenueConfig, dj: DjConfig) -> PipelineState:
        """Set venue and DJ. From the venue stage this also opens the party."""
        state = self._store.apply(SetEventConfig(venue=venue, dj=dj))
        if state.stage == "venue":
            state = self._store.apply(Advance(stage="party"))
        return state

    # ------------------------------------------------------------------
    # Stage 7: party
    # ------------------------------------------------------------------

    async def simulate(self) -> SimulationResult:
        state = self._require_stage("party")
        roster = state.admitted
        venue, dj = state.venue_config, state.dj_config
        if not roster or venue is None or dj is None:
            raise StageTransitionError("Nothing to simulate")

        output = await self._generate("simulation", lambda: simulation_prompt(roster, venue, dj))
        result: SimulationResult | None = None
        if output is not None:
            decoded = decode_simulation(output, [p.id for p in roster])
            if isinstance(decoded, Err):
                logger.warning("Generated simulation unusable: %s", decoded.reason)
            else:
                result = decoded.value.model_copy(update={"generated_at": self._clock()})
        if result is None:
            logger.warning("Using fallback simulation for %d attendees", len(roster))
            result = self._simulator.run(roster, dj.rounds, venue.name)
            result = result.model_copy(update={"generated_at": self._clock()})

        self._store.apply(SetSimulationResult(result=result))
        return result
