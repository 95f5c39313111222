"""FastAPI API endpoints under /api.

Endpoint groups: health, chat (streamed scene relay). The server keeps no
state between requests; the client sends its whole history every turn.
"""

from fastapi import APIRouter

from .chat import router as chat_router
from .health import router as health_router

router = APIRouter()
router.include_router(health_router)
router.include_router(chat_router)
