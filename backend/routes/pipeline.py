"""Pipeline endpoints: one per stage operation, plus state, advance and reset."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from backend.config import get_config
from velvet_rope.pipeline.bouncer import timed_delivery
from velvet_rope.pipeline.orchestrator import PipelineOrchestrator
from velvet_rope.pipeline.replay import replay_rounds
from velvet_rope.roster import RosterError, parse_csv
from velvet_rope.signals import make_snapshot, summarize

from .models import BiometricsBody, EventBody, GuestListBody, RosterBody, SyntheticVettingBody

router = APIRouter()


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    """Fresh orchestrator per request so settings changes apply immediately."""
    config = get_config()
    state = request.app.state
    state.bouncer.interval_ms = max(1, int(config["sampling_interval_ms"]))
    return PipelineOrchestrator(
        state.store,
        state.llm_factory(config),
        simulator=state.simulator,
        bouncer=state.bouncer,
        event_name=config["event_name"],
    )


def _dump(model):
    return model.model_dump(mode="json")


@router.get("/pipeline")
async def get_pipeline(request: Request):
    """Full pipeline state."""
    return _dump(request.app.state.store.state)


@router.post("/pipeline/reset")
async def reset_pipeline(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    """Discard everything and go back to upload."""
    return _dump(orch.reset())


@router.post("/pipeline/advance")
async def advance_pipeline(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    """Move to the next stage."""
    try:
        return _dump(orch.advance())
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/pipeline/roster")
async def upload_roster(body: RosterBody, orch: PipelineOrchestrator = Depends(get_orchestrator)):
    """Load a roster from CSV text or a list of attendees and start a fresh run."""
    try:
        if body.csv is not None:
            attendees = parse_csv(body.csv, limit=body.limit)
        elif body.attendees:
            attendees = body.attendees[:body.limit] if body.limit else body.attendees
        else:
            raise RosterError("Provide either csv or attendees")
        return _dump(orch.load_roster(attendees))
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/pipeline/profiles")
async def enrich_profiles(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    """Generate enriched profiles for the whole roster."""
    try:
        profiles = await orch.enrich_profiles()
    except ValueError as e:
        raise HTTPException(400, str(e))
    return [_dump(p) for p in profiles]


@router.post("/pipeline/pitches")
async def generate_pitches(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    """Generate one pitch per enriched profile."""
    try:
        pitches = await orch.generate_pitches()
    except ValueError as e:
        raise HTTPException(400, str(e))
    return [_dump(p) for p in pitches]


@router.post("/pipeline/biometrics")
async def record_biometrics(
    body: BiometricsBody, orch: PipelineOrchestrator = Depends(get_orchestrator)
):
    """Record one attendee's vetting from client-sampled expression vectors."""
    try:
        snapshots = [make_snapshot(s.expressions, s.timestamp) for s in body.samples]
        result = summarize(body.attendee_id, snapshots, body.duration_ms)
        orch.record_biometrics(result)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _dump(result)


@router.post("/pipeline/biometrics/synthetic")
async def synthetic_vetting(
    body: SyntheticVettingBody, orch: PipelineOrchestrator = Depends(get_orchestrator)
):
    """Vet every remaining attendee server-side with synthetic expressions.

    Each window lasts as long as the pitch would take to speak.
    """
    ms_per_word = body.ms_per_word
    if ms_per_word is None:
        ms_per_word = get_config()["ms_per_word"]

    def delivery(pitch):
        return timed_delivery(len(pitch.pitch_text.split()) * ms_per_word / 1000)

    try:
        results = await orch.vet_remaining(delivery)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except RuntimeError as e:
        raise HTTPException(409, str(e))
    return [_dump(r) for r in results]


@router.post("/pipeline/guest-list")
async def build_guest_list(
    body: GuestListBody, orch: PipelineOrchestrator = Depends(get_orchestrator)
):
    """Rank vetted attendees and apply the capacity cut."""
    try:
        entries = orch.build_guest_list(body.capacity)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return [_dump(e) for e in entries]


@router.post("/pipeline/event")
async def configure_event(body: EventBody, orch: PipelineOrchestrator = Depends(get_orchestrator)):
    """Set venue and DJ configuration."""
    try:
        return _dump(orch.configure_event(body.venue, body.dj))
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/pipeline/simulation")
async def run_simulation(orch: PipelineOrchestrator = Depends(get_orchestrator)):
    """Simulate the party for the admitted roster."""
    try:
        result = await orch.simulate()
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _dump(result)


@router.get("/pipeline/simulation/stream")
async def stream_simulation(request: Request, delay: float | None = None):
    """Replay the stored simulation one round per line (NDJSON)."""
    result = request.app.state.store.state.simulation_result
    if result is None:
        raise HTTPException(404, "No simulation yet")
    if delay is None:
        delay = float(get_config()["replay_delay_seconds"])

    async def lines():
        async for rnd in replay_rounds(result, max(0.0, delay)):
            yield rnd.model_dump_json() + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")
