import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend import config
from backend.routes import router
from velvet_rope.pipeline.bouncer import Bouncer
from velvet_rope.simulation import FallbackSimulator
from velvet_rope.store import StageStore

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, simulator_seed: int | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    config.init_storage(resolved)
    settings = config.get_config()

    app = FastAPI(title="Velvet Rope")
    app.state.store = StageStore(resolved)
    app.state.llm_factory = config.build_llm
    app.state.simulator = FallbackSimulator(seed=simulator_seed)
    app.state.bouncer = Bouncer(interval_ms=settings["sampling_interval_ms"])
    app.include_router(router, prefix="/api")

    logger.info("Pipeline state at %s (stage=%s)", app.state.store.path, app.state.store.state.stage)
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
