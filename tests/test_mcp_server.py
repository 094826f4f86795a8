"""MCP tool tests: direct calls plus the FastMCP in-process client."""

import json

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

import backend.mcp_server as mcp_server
from velvet_rope.llm import OfflineLLM
from velvet_rope.models import DjConfig, VenueConfig
from velvet_rope.pipeline.orchestrator import PipelineOrchestrator
from velvet_rope.signals import make_snapshot, summarize
from velvet_rope.simulation import FallbackSimulator
from velvet_rope.store import StageStore


@pytest.fixture(autouse=True)
def fresh_store():
    """Each test starts from an empty in-memory store."""
    mcp_server.set_store(StageStore())


async def _party_store(attendees) -> StageStore:
    store = StageStore()
    orch = PipelineOrchestrator(store, OfflineLLM(), simulator=FallbackSimulator(seed=5))
    orch.load_roster(attendees[:4])
    await orch.enrich_profiles()
    orch.advance()
    await orch.generate_pitches()
    orch.advance()
    for i, a in enumerate(attendees[:4]):
        orch.record_biometrics(summarize(a.id, [make_snapshot({"happy": i / 4}, 0)]))
    orch.advance()
    orch.build_guest_list(2)
    orch.advance()
    orch.configure_event(
        VenueConfig(name="Loft", type="roundtable", capacity=2),
        DjConfig(theme="Quiet", goal="Talk", dynamics="open-floor", rounds=2),
    )
    await orch.simulate()
    return store


def test_empty_store_stage():
    info = mcp_server.get_pipeline_stage()
    assert info["stage"] == "upload"
    assert info["label"] == "The Line"
    assert info["attendees"] == 0
    assert info["has_simulation"] is False


def test_empty_store_has_no_simulation():
    assert mcp_server.get_simulation_summary() == {"available": False}
    assert mcp_server.list_guest_list() == []


async def test_guest_list_in_rank_order(attendees):
    mcp_server.set_store(await _party_store(attendees))
    entries = mcp_server.list_guest_list()
    assert [e["rank"] for e in entries] == [1, 2, 3, 4]
    # happiest last in the roster, so ranks run backwards
    assert [e["attendee_id"] for e in entries] == ["4", "3", "2", "1"]
    assert [e["attendee_id"] for e in mcp_server.list_guest_list(admitted_only=True)] == ["4", "3"]


async def test_simulation_summary(attendees):
    mcp_server.set_store(await _party_store(attendees))
    summary = mcp_server.get_simulation_summary()
    assert summary["available"] is True
    assert summary["source"] == "fallback"
    assert summary["total_rounds"] == 2
    members = {m for g in summary["final_groups"] for m in g["member_ids"]}
    assert members <= {"3", "4"}


async def test_stage_via_client_session(attendees):
    mcp_server.set_store(await _party_store(attendees))
    async with create_connected_server_and_client_session(mcp_server.mcp) as client:
        result = await client.call_tool("get_pipeline_stage", {})
    info = json.loads(result.content[0].text)
    assert info["stage"] == "party"
    assert info["admitted"] == 2
    assert info["has_simulation"] is True
