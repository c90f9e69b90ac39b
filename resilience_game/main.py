from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional

from resilience_game.errors import GameError
from resilience_game.load_secrets import log_level, max_active_sessions, session_retention_days
from resilience_game.routers import session
from resilience_game.services.session_engine import GameSessionOrchestrator

logging.basicConfig(level=log_level)
logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def build_default_orchestrator() -> GameSessionOrchestrator:
    """Orchestrator on the configured SQL backend (sqlite unless DATABASE_BACKEND=postgres)."""
    from resilience_game.crud import SqlDocumentStore
    from resilience_game.db import Session, engine

    return GameSessionOrchestrator(SqlDocumentStore(Session, engine), max_active_sessions=max_active_sessions)


def create_app(orchestrator: Optional[GameSessionOrchestrator] = None, schedule_purge: bool = True) -> FastAPI:
    orchestrator = orchestrator or build_default_orchestrator()
    scheduler = AsyncIOScheduler()

    @asynccontextmanager
    async def lifespan(app):
        """Create the document table and seed the catalog.
        This function is called to start the server.
        """
        await orchestrator.initialize()

        # Completed sessions past the retention window are deleted once a day
        if schedule_purge and session_retention_days > 0:
            scheduler.add_job(
                orchestrator.purge_expired_sessions,
                "interval",
                hours=24,
                args=[session_retention_days],
            )
            scheduler.start()
        logging.info("Start Server")
        try:
            yield
        finally:
            if scheduler.running:
                scheduler.shutdown()
            logging.info("Stop Server")

    app = FastAPI(lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.add_exception_handler(GameError, session.game_error_handler)
    app.include_router(session.session_router)
    return app


app = create_app()
