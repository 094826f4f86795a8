"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, settings, check-connection), pipeline
(state, advance, reset, and one endpoint per stage operation), speech.
"""

from fastapi import APIRouter

from .pipeline import router as pipeline_router
from .settings import router as settings_router
from .speech import router as speech_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(pipeline_router)
router.include_router(speech_router)
