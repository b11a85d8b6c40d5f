import logging

from fastapi import FastAPI

from azure_dao.config import Settings
from azure_dao.narrative import Narrator, build_narrator
from azure_dao.routes import router
from azure_dao.session import GameSession

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, narrator: Narrator | None = None) -> FastAPI:
    resolved = settings or Settings.from_env()
    narrator = narrator or build_narrator(resolved)

    app = FastAPI(title="Azure Dao")
    app.state.settings = resolved
    app.state.session = GameSession(narrator, player_name=resolved.player_name)
    app.include_router(router, prefix="/api")
    logger.info("Game session ready (offline=%s)", narrator.offline)
    return app


# Default app instance for uvicorn (reads API_KEY and friends from the env)
app = create_app()
