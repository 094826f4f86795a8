"""Tests for velvet_rope.pipeline.orchestrator.

Each stage operation is exercised against a StubLLM with canned responses:
usable output, per-batch garbage (soft failure) and a failing call (hard
failure). Whatever the generator does, every stage must produce complete,
valid artifacts.
"""

import json
from unittest.mock import patch

import pytest

from conftest import make_attendee
from velvet_rope.llm import LLMError, OfflineLLM
from velvet_rope.models import TONES, DjConfig, VenueConfig
from velvet_rope.pipeline.bouncer import Bouncer, timed_delivery
from velvet_rope.pipeline.fallbacks import raw_summary
from velvet_rope.pipeline.orchestrator import PipelineOrchestrator
from velvet_rope.prompts import PromptError
from velvet_rope.roster import RosterError
from velvet_rope.simulation import FallbackSimulator
from velvet_rope.store import StageStore, StageTransitionError


# ---------------------------------------------------------------------------
# StubLLM - dispatches by stage name, independent queue per stage
# ---------------------------------------------------------------------------

class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    A response that is an Exception instance is raised instead of returned.
    """

    def __init__(self, responses: dict[str, list]) -> None:
        self._queues = {k: list(v) for k, v in responses.items()}
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(f"StubLLM: unexpected call to stage={stage!r}")
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]


def _profiles_json(ids, prefix="Generated") -> str:
    return json.dumps([
        {
            "id": i,
            "profileSummary": f"{prefix} summary {i}",
            "uniqueValue": f"{prefix} value {i}",
            "potentialContributions": ["one", "two", "three"],
        }
        for i in ids
    ])


def _pitches_json(ids, tone="confident") -> str:
    return json.dumps([
        {
            "attendeeId": i,
            "pitchText": f"Please let {i} in, I beg you.",
            "pitchTone": tone,
            "keyArguments": ["a", "b", "c"],
        }
        for i in ids
    ])


VENUE = VenueConfig(name="The Vault", type="hackathon", capacity=3)
DJ = DjConfig(theme="Neon", goal="Ship a demo", dynamics="collaborative", rounds=4)


def _orchestrator(store: StageStore, llm=None, **kwargs) -> PipelineOrchestrator:
    kwargs.setdefault("simulator", FallbackSimulator(seed=1))
    kwargs.setdefault("bouncer", Bouncer(interval_ms=5, seed=1))
    return PipelineOrchestrator(store, llm or OfflineLLM(), **kwargs)


async def _to_bouncer(store: StageStore, n: int = 4) -> PipelineOrchestrator:
    orch = _orchestrator(store)
    orch.load_roster([make_attendee(i) for i in range(1, n + 1)])
    await orch.enrich_profiles()
    orch.advance()
    await orch.generate_pitches()
    orch.advance()
    return orch


async def _to_party(store: StageStore, n: int = 4, capacity: int = 3) -> None:
    orch = await _to_bouncer(store, n)
    await orch.vet_remaining(lambda pitch: timed_delivery(0.01))
    orch.advance()
    orch.build_guest_list(capacity)
    orch.advance()
    orch.configure_event(VENUE, DJ)


# ---------------------------------------------------------------------------
# Stage control
# ---------------------------------------------------------------------------

class TestLoadRoster:
    def test_moves_to_profiles(self, store: StageStore, attendees) -> None:
        state = _orchestrator(store).load_roster(attendees)
        assert state.stage == "profiles"
        assert len(state.raw_attendees) == 15

    def test_empty_roster_rejected(self, store: StageStore) -> None:
        with pytest.raises(RosterError):
            _orchestrator(store).load_roster([])
        assert store.state.stage == "upload"

    def test_duplicate_ids_rejected(self, store: StageStore) -> None:
        with pytest.raises(RosterError, match="unique"):
            _orchestrator(store).load_roster([make_attendee(1), make_attendee(1)])

    async def test_new_roster_restarts_pipeline(self, store: StageStore) -> None:
        orch = await _to_bouncer(store)
        state = orch.load_roster([make_attendee(9)])
        assert state.stage == "profiles"
        assert state.pitches == []
        assert [a.id for a in state.raw_attendees] == ["9"]


class TestAdvance:
    def test_advance_without_artifact_rejected(self, store: StageStore, attendees) -> None:
        orch = _orchestrator(store)
        orch.load_roster(attendees)
        with pytest.raises(StageTransitionError):
            orch.advance()
        assert store.state.stage == "profiles"

    async def test_no_stage_after_party(self, store: StageStore) -> None:
        await _to_party(store)
        with pytest.raises(StageTransitionError, match="final stage"):
            _orchestrator(store).advance()

    async def test_reset(self, store: StageStore) -> None:
        await _to_party(store)
        state = _orchestrator(store).reset()
        assert state.stage == "upload"
        assert state.guest_list == []


# ---------------------------------------------------------------------------
# Stage 2: profiles
# ---------------------------------------------------------------------------

class TestEnrichProfiles:
    async def test_generated_profiles_in_batches_of_five(self, store: StageStore) -> None:
        ids = [str(i) for i in range(1, 8)]
        llm = StubLLM({"enrichment": [_profiles_json(ids[:5]), _profiles_json(ids[5:])]})
        orch = _orchestrator(store, llm)
        orch.load_roster([make_attendee(i) for i in range(1, 8)])
        profiles = await orch.enrich_profiles()
        assert llm.stages() == ["enrichment", "enrichment"]
        assert [p.id for p in profiles] == ids
        assert profiles[6].profile_summary == "Generated summary 7"
        assert profiles[0].potential_contributions == ["one", "two", "three"]
        assert store.state.enriched_profiles == profiles

    async def test_prompt_lists_only_the_batch(self, store: StageStore) -> None:
        llm = StubLLM({"enrichment": [_profiles_json(["1", "2", "3", "4", "5"]), _profiles_json(["6"])]})
        orch = _orchestrator(store, llm)
        orch.load_roster([make_attendee(i) for i in range(1, 7)])
        await orch.enrich_profiles()
        assert '"id": "6"' not in llm.calls[0][1]
        assert '"id": "6"' in llm.calls[1][1]

    async def test_unusable_batch_falls_back_for_that_batch_only(self, store: StageStore) -> None:
        llm = StubLLM({"enrichment": ["Sorry, I can't do that.", _profiles_json(["6", "7"])]})
        orch = _orchestrator(store, llm)
        attendees = [make_attendee(i) for i in range(1, 8)]
        orch.load_roster(attendees)
        profiles = await orch.enrich_profiles()
        assert [p.profile_summary for p in profiles[:5]] == [raw_summary(a) for a in attendees[:5]]
        assert profiles[5].profile_summary == "Generated summary 6"

    async def test_missing_id_falls_back_for_that_attendee(self, store: StageStore) -> None:
        llm = StubLLM({"enrichment": [_profiles_json(["1", "3"])]})
        orch = _orchestrator(store, llm)
        attendees = [make_attendee(i) for i in range(1, 4)]
        orch.load_roster(attendees)
        profiles = await orch.enrich_profiles()
        assert profiles[0].profile_summary == "Generated summary 1"
        assert profiles[1].profile_summary == raw_summary(attendees[1])
        assert profiles[2].profile_summary == "Generated summary 3"

    async def test_extra_ids_ignored(self, store: StageStore) -> None:
        llm = StubLLM({"enrichment": [_profiles_json(["1", "99"])]})
        orch = _orchestrator(store, llm)
        orch.load_roster([make_attendee(1)])
        profiles = await orch.enrich_profiles()
        assert [p.id for p in profiles] == ["1"]

    async def test_failed_call_falls_back_for_everyone(self, store: StageStore) -> None:
        llm = StubLLM({"enrichment": [_profiles_json(["1", "2", "3", "4", "5"]), LLMError("HTTP 529")]})
        orch = _orchestrator(store, llm)
        attendees = [make_attendee(i) for i in range(1, 8)]
        orch.load_roster(attendees)
        profiles = await orch.enrich_profiles()
        assert len(profiles) == 7
        assert [p.profile_summary for p in profiles] == [raw_summary(a) for a in attendees]

    async def test_prompt_error_falls_back(self, store: StageStore) -> None:
        orch = _orchestrator(store, StubLLM({}))
        orch.load_roster([make_attendee(1)])
        with patch("velvet_rope.pipeline.orchestrator.enrichment_prompt", side_effect=PromptError("boom")):
            profiles = await orch.enrich_profiles()
        assert profiles[0].profile_summary == raw_summary(make_attendee(1))

    async def test_wrong_stage_rejected(self, store: StageStore) -> None:
        with pytest.raises(StageTransitionError):
            await _orchestrator(store).enrich_profiles()

    async def test_timestamps_from_clock(self, store: StageStore) -> None:
        from datetime import datetime, timezone
        fixed = datetime(2025, 1, 2, tzinfo=timezone.utc)
        orch = _orchestrator(store, clock=lambda: fixed)
        orch.load_roster([make_attendee(1)])
        [profile] = await orch.enrich_profiles()
        assert profile.generated_at == fixed


# ---------------------------------------------------------------------------
# Stage 3: pitches
# ---------------------------------------------------------------------------

async def _at_pitches(store: StageStore, llm, n: int) -> PipelineOrchestrator:
    setup = _orchestrator(store)
    setup.load_roster([make_attendee(i) for i in range(1, n + 1)])
    await setup.enrich_profiles()
    setup.advance()
    return _orchestrator(store, llm)


class TestGeneratePitches:
    async def test_batches_of_three_with_round_robin_tones(self, store: StageStore) -> None:
        llm = StubLLM({"pitches": [_pitches_json(["1", "2", "3"]), _pitches_json(["4"])]})
        orch = await _at_pitches(store, llm, 4)
        pitches = await orch.generate_pitches()
        assert llm.stages() == ["pitches", "pitches"]
        first_prompt, second_prompt = llm.calls[0][1], llm.calls[1][1]
        for i, tone in enumerate(TONES[:3]):
            assert f"Person {i + 1}: " in first_prompt
            assert f"Tone: {tone}." in first_prompt
        assert f"Tone: {TONES[3]}." in second_prompt
        assert [p.attendee_id for p in pitches] == ["1", "2", "3", "4"]
        assert pitches[0].pitch_text == "Please let 1 in, I beg you."

    async def test_one_pitch_per_profile(self, store: StageStore) -> None:
        llm = StubLLM({"pitches": [_pitches_json(["1", "1", "2"]), "garbage"]})
        orch = await _at_pitches(store, llm, 5)
        pitches = await orch.generate_pitches()
        assert sorted(p.attendee_id for p in pitches) == ["1", "2", "3", "4", "5"]

    async def test_unknown_tone_replaced(self, store: StageStore) -> None:
        llm = StubLLM({"pitches": [_pitches_json(["1", "2"], tone="smug")]})
        orch = await _at_pitches(store, llm, 2)
        pitches = await orch.generate_pitches()
        assert [p.pitch_tone for p in pitches] == TONES[:2]

    async def test_failed_call_falls_back_for_everyone(self, store: StageStore) -> None:
        llm = StubLLM({"pitches": [LLMError("Cannot connect")]})
        orch = await _at_pitches(store, llm, 4)
        pitches = await orch.generate_pitches()
        assert len(llm.calls) == 1
        assert [p.pitch_tone for p in pitches] == TONES[:4]
        assert all(len(p.key_arguments) == 3 for p in pitches)


# ---------------------------------------------------------------------------
# Stage 4: bouncer
# ---------------------------------------------------------------------------

class TestVetting:
    async def test_vet_records_result(self, store: StageStore) -> None:
        orch = await _to_bouncer(store)
        result = await orch.vet("2", timed_delivery(0.02))
        assert store.state.biometric_results == [result]
        assert [p.attendee_id for p in orch.pending_vetting()] == ["1", "3", "4"]

    async def test_vet_twice_rejected(self, store: StageStore) -> None:
        orch = await _to_bouncer(store)
        await orch.vet("1", timed_delivery(0.01))
        with pytest.raises(StageTransitionError, match="already"):
            await orch.vet("1", timed_delivery(0.01))

    async def test_vet_unknown_attendee_rejected(self, store: StageStore) -> None:
        orch = await _to_bouncer(store)
        with pytest.raises(StageTransitionError, match="No pitch"):
            await orch.vet("42", timed_delivery(0.01))

    async def test_vet_remaining_in_roster_order(self, store: StageStore) -> None:
        orch = await _to_bouncer(store)
        await orch.vet("3", timed_delivery(0.01))
        results = await orch.vet_remaining(lambda pitch: timed_delivery(0.01))
        assert [r.attendee_id for r in results] == ["1", "2", "4"]
        assert orch.pending_vetting() == []

    async def test_record_biometrics(self, store: StageStore) -> None:
        from velvet_rope.signals import make_snapshot, summarize
        orch = await _to_bouncer(store)
        result = summarize("1", [make_snapshot({"happy": 1.0}, 0)])
        state = orch.record_biometrics(result)
        assert state.biometric_results[0].score == 100

    async def test_record_outside_bouncer_rejected(self, store: StageStore) -> None:
        from velvet_rope.signals import summarize
        with pytest.raises(StageTransitionError):
            _orchestrator(store).record_biometrics(summarize("1", []))


# ---------------------------------------------------------------------------
# Stage 5 + 6: guest list and venue
# ---------------------------------------------------------------------------

class TestGuestList:
    async def test_default_capacity_is_half_rounded_up(self, store: StageStore) -> None:
        orch = await _to_bouncer(store, 5)
        await orch.vet_remaining(lambda pitch: timed_delivery(0.01))
        orch.advance()
        entries = orch.build_guest_list()
        assert sum(e.admitted for e in entries) == 3
        assert [e.rank for e in entries] == [1, 2, 3, 4, 5]

    async def test_unvetted_attendees_ranked_neutral(self, store: StageStore) -> None:
        orch = await _to_bouncer(store, 3)
        await orch.vet("1", timed_delivery(0.01))
        orch.advance()
        entries = orch.build_guest_list(3)
        assert len(entries) == 3
        assert {e.biometric.score for e in entries if e.profile.id != "1"} == {50}

    async def test_capacity_change_keeps_order(self, store: StageStore) -> None:
        orch = await _to_bouncer(store, 6)
        await orch.vet_remaining(lambda pitch: timed_delivery(0.01))
        orch.advance()
        first = orch.build_guest_list(2)
        second = orch.build_guest_list(5)
        assert [e.profile.id for e in first] == [e.profile.id for e in second]
        assert sum(e.admitted for e in second) == 5

    async def test_before_guest_list_stage_rejected(self, store: StageStore) -> None:
        orch = await _to_bouncer(store)
        with pytest.raises(StageTransitionError):
            orch.build_guest_list(2)

    async def test_configure_event_opens_party(self, store: StageStore) -> None:
        await _to_party(store)
        state = store.state
        assert state.stage == "party"
        assert state.venue_config == VENUE
        assert state.dj_config == DJ

    async def test_reconfigure_at_party_stays_at_party(self, store: StageStore) -> None:
        await _to_party(store)
        state = _orchestrator(store).configure_event(VENUE, DJ.model_copy(update={"rounds": 2}))
        assert state.stage == "party"
        assert state.dj_config.rounds == 2


# ---------------------------------------------------------------------------
# Stage 7: party
# ---------------------------------------------------------------------------

def _generated_simulation(ids: list[str], rounds: int) -> str:
    return "Here is the simulation:\n" + json.dumps({
        "rounds": [
            {
                "roundNumber": r + 1,
                "narrative": f"Round {r + 1} happens.",
                "groups": [{"id": "g1", "memberIds": ids, "topic": "t", "output": "o", "cohesion": 80}],
                "events": [],
                "agentStates": [
                    {"attendeeId": i, "position": {"x": 0.5, "y": 0.5}, "currentGroupId": "g1",
                     "mood": "engaged", "energyLevel": 70, "satisfaction": 75}
                    for i in ids
                ],
            }
            for r in range(rounds)
        ],
        "finalGroups": [{"id": "g1", "memberIds": ids, "topic": "t", "output": "o", "cohesion": 80}],
        "aggregatedOutput": "A working demo.",
        "totalRounds": rounds,
    })


class TestSimulate:
    async def test_generated_simulation_accepted(self, store: StageStore) -> None:
        await _to_party(store)
        ids = [p.id for p in store.state.admitted]
        llm = StubLLM({"simulation": [_generated_simulation(ids, 4)]})
        result = await _orchestrator(store, llm).simulate()
        assert result.source == "generated"
        assert result.aggregated_output == "A working demo."
        assert store.state.simulation_result == result
        prompt = llm.calls[0][1]
        for i in ids:
            assert f"(id: {i})" in prompt

    async def test_invalid_simulation_falls_back(self, store: StageStore) -> None:
        await _to_party(store)
        ids = [p.id for p in store.state.admitted]
        llm = StubLLM({"simulation": [_generated_simulation(ids[:-1], 4)]})
        result = await _orchestrator(store, llm).simulate()
        assert result.source == "fallback"
        assert result.total_rounds == DJ.rounds
        for rnd in result.rounds:
            assert sorted(a.attendee_id for a in rnd.agent_states) == sorted(ids)

    async def test_failed_call_falls_back(self, store: StageStore) -> None:
        await _to_party(store)
        llm = StubLLM({"simulation": [LLMError("LLM backend timed out after 120.0s")]})
        result = await _orchestrator(store, llm).simulate()
        assert result.source == "fallback"
        assert len(result.rounds) == 4

    async def test_only_admitted_attendees_simulated(self, store: StageStore) -> None:
        await _to_party(store, n=6, capacity=2)
        result = await _orchestrator(store).simulate()
        admitted = {p.id for p in store.state.admitted}
        assert len(admitted) == 2
        assert {a.attendee_id for a in result.rounds[0].agent_states} == admitted

    async def test_seeded_fallback_is_reproducible(self, store: StageStore) -> None:
        await _to_party(store)
        results = [
            await _orchestrator(store, simulator=FallbackSimulator(seed=42)).simulate()
            for _ in range(2)
        ]
        a, b = (r.model_dump(exclude={"generated_at"}) for r in results)
        assert a == b

    async def test_simulate_before_party_rejected(self, store: StageStore) -> None:
        await _to_bouncer(store)
        with pytest.raises(StageTransitionError):
            await _orchestrator(store).simulate()
