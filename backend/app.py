from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import FileResponse, RedirectResponse

from backend.routes import router
from marutto.llm import build_llm
from marutto.orchestrator import LLMFactory

load_dotenv(Path(__file__).parent.parent / ".env")

STATIC_DIR = Path(__file__).parent / "static"
ICON_PATH = "/icon.svg"


def create_app(llm_factory: LLMFactory = build_llm) -> FastAPI:
    app = FastAPI(title="Marutto Case File")
    app.state.llm_factory = llm_factory
    app.include_router(router, prefix="/api")

    @app.get(ICON_PATH, include_in_schema=False)
    async def icon():
        return FileResponse(STATIC_DIR / "icon.svg", media_type="image/svg+xml")

    # Legacy icon path: browsers still ask for it
    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return RedirectResponse(ICON_PATH, status_code=308)

    return app


# Default app instance for uvicorn (provider settings come from the environment)
app = create_app()
