"""Health check, settings, and connection check endpoints."""

import httpx
from fastapi import APIRouter

from backend.config import get_config, update_config
from velvet_rope.llm import ANTHROPIC_VERSION

from .models import CheckConnectionBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/check-connection")
async def check_connection(body: CheckConnectionBody):
    """Quick reachability check against an LLM provider URL."""
    url = f"{body.provider_url.rstrip('/')}/v1/models"
    headers: dict[str, str] = {}
    if body.provider_format == "anthropic":
        headers["anthropic-version"] = ANTHROPIC_VERSION
        if body.api_key:
            headers["x-api-key"] = body.api_key
    elif body.api_key:
        headers["Authorization"] = f"Bearer {body.api_key}"
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.get(url, headers=headers)
            resp.raise_for_status()
        return {"ok": True}
    except httpx.HTTPError:
        return {"ok": False}


@router.get("/settings")
async def get_settings():
    """Get app settings (LLM connection, speech, timings)."""
    return get_config()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update app settings (partial merge)."""
    return update_config(body)
