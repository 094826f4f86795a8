"""Pitch narration endpoint."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from backend.config import get_config, speech_api_key
from velvet_rope.speech import MissingCredentialError, SpeechUpstreamError, synthesize

from .models import SpeechBody

router = APIRouter()


@router.post("/speech")
async def speech(body: SpeechBody):
    """Render text to mp3 audio."""
    settings = get_config()["speech"]
    try:
        audio = await synthesize(
            body.text,
            body.voice or settings["voice"],
            api_key=speech_api_key(),
            base_url=settings["base_url"],
            model=settings["model"],
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    except MissingCredentialError as e:
        raise HTTPException(500, str(e))
    except SpeechUpstreamError as e:
        raise HTTPException(502, str(e))
    return Response(content=audio, media_type="audio/mpeg")
