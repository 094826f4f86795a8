"""Data directory and app configuration (LLM connection, speech, timings)."""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

from velvet_rope.llm import LLM, HttpLLM, OfflineLLM
from velvet_rope.prompts import DEFAULT_EVENT

logger = logging.getLogger(__name__)

_data_dir: Path | None = None

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connection": {
        "provider_url": "https://api.anthropic.com",
        "api_key": "",
        "provider_format": "anthropic",
        "model": "claude-sonnet-4-5-20250929",
        "timeout": 120,
    },
    "speech": {
        "base_url": "https://api.openai.com",
        "model": "tts-1-hd",
        "voice": "onyx",
    },
    "event_name": DEFAULT_EVENT,
    "replay_delay_seconds": 1.5,
    "sampling_interval_ms": 250,
    "ms_per_word": 200,
}

_SECTIONS = ("llm_connection", "speech")
_SCALARS = ("event_name", "replay_delay_seconds", "sampling_interval_ms", "ms_per_word")


def init_storage(data_dir: Path) -> None:
    global _data_dir
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using config"
    return _data_dir


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = copy.deepcopy(_CONFIG_DEFAULTS)
    path = _config_path()
    if path.is_file():
        try:
            stored = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            stored = {}
        for section in _SECTIONS:
            if isinstance(stored.get(section), dict):
                config[section].update(stored[section])
        for key in _SCALARS:
            if key in stored:
                config[key] = stored[key]
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config()
    for section in _SECTIONS:
        if isinstance(fields.get(section), dict):
            config[section].update(fields[section])
    for key in _SCALARS:
        if key in fields:
            config[key] = fields[key]
    _config_path().write_text(json.dumps(config, indent=2))
    return config


def llm_api_key(config: dict[str, Any]) -> str:
    """Stored key first, then the environment variable matching the format."""
    conn = config["llm_connection"]
    if conn.get("api_key"):
        return conn["api_key"]
    env_var = "OPENAI_API_KEY" if conn.get("provider_format") == "openai" else "ANTHROPIC_API_KEY"
    return os.getenv(env_var, "")


def speech_api_key() -> str:
    return os.getenv("OPENAI_API_KEY", "")


def build_llm(config: dict[str, Any]) -> LLM:
    """HttpLLM for the configured connection, or OfflineLLM when there is no key."""
    conn = config["llm_connection"]
    api_key = llm_api_key(config)
    if not api_key:
        logger.info("No LLM API key configured; generation will use fallbacks")
        return OfflineLLM()
    return HttpLLM(
        provider_url=conn["provider_url"],
        api_key=api_key,
        provider_format=conn.get("provider_format", "anthropic"),
        model=conn.get("model", ""),
        timeout=float(conn.get("timeout", 120)),
    )
