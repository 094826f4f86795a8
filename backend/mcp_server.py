"""FastMCP server exposing read-only pipeline views as MCP tools.

Tools:
  - get_pipeline_stage()       - current stage and artifact counts
  - list_guest_list(admitted_only)  - ranked entries with scores
  - get_simulation_summary()   - final groups and aggregated output

The store is a module global replaced via set_store() for tests, or opened
on data/ (or $DATA_DIR) when run as __main__.

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from velvet_rope.models import STAGE_LABELS
from velvet_rope.store import StageStore

mcp = FastMCP("velvet-rope")

_store: StageStore = StageStore()


def set_store(store: StageStore) -> None:
    """Replace the active store (used in tests)."""
    global _store
    _store = store


def get_store() -> StageStore:
    """Return the active store."""
    return _store


@mcp.tool()
def get_pipeline_stage() -> dict:
    """Return the current stage and how many artifacts each stage has produced."""
    state = _store.state
    return {
        "stage": state.stage,
        "label": STAGE_LABELS[state.stage],
        "attendees": len(state.raw_attendees),
        "profiles": len(state.enriched_profiles),
        "pitches": len(state.pitches),
        "vetted": len(state.biometric_results),
        "admitted": len(state.admitted),
        "has_simulation": state.simulation_result is not None,
    }


@mcp.tool()
def list_guest_list(admitted_only: bool = False) -> list[dict]:
    """List guest list entries in rank order."""
    return [
        {
            "rank": e.rank,
            "attendee_id": e.profile.id,
            "name": e.profile.name,
            "company": e.profile.company,
            "score": e.biometric.score,
            "admitted": e.admitted,
        }
        for e in _store.state.guest_list
        if e.admitted or not admitted_only
    ]


@mcp.tool()
def get_simulation_summary() -> dict:
    """Summarize the stored simulation, or report that there is none."""
    result = _store.state.simulation_result
    if result is None:
        return {"available": False}
    return {
        "available": True,
        "source": result.source,
        "total_rounds": result.total_rounds,
        "aggregated_output": result.aggregated_output,
        "final_groups": [
            {"id": g.id, "topic": g.topic, "member_ids": list(g.member_ids), "cohesion": g.cohesion}
            for g in result.final_groups
        ],
    }


if __name__ == "__main__":
    import os
    from pathlib import Path

    data_path = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent / "data"))
    set_store(StageStore(data_path))
    mcp.run()
