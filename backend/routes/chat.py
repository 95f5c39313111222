"""Chat endpoint: relays the model's streamed scene to the client."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from marutto.config import ConfigurationError, Settings, get_settings
from marutto.llm import LLMError
from marutto.models import ChatBody
from marutto.orchestrator import PromptOrchestrator

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _read_chat_body(request: Request) -> ChatBody:
    """Validate the body by hand so every malformed request is a 400."""
    raw = await request.body()
    if not raw.strip():
        raise HTTPException(400, "Request body is required")
    try:
        data = json.loads(raw)
    except ValueError:
        raise HTTPException(400, "Request body must be JSON")
    if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
        raise HTTPException(400, "messages must be an array")
    try:
        return ChatBody.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        raise HTTPException(400, f"Invalid {where}: {first['msg']}")


@router.post("/chat")
async def chat(request: Request, settings: Settings = Depends(get_settings)):
    """Stream the next scene for the given history as server-sent events."""
    body = await _read_chat_body(request)
    orchestrator = PromptOrchestrator(settings, request.app.state.llm_factory)
    try:
        frames = await orchestrator.start(body.messages)
    except ConfigurationError as e:
        raise HTTPException(500, str(e))
    except LLMError as e:
        raise HTTPException(502, str(e))
    return StreamingResponse(frames, media_type="text/event-stream", headers=STREAM_HEADERS)
