"""FastAPI application factory.

Run with ``sender-patterns serve`` or
``uvicorn sender_patterns.api.app:create_app --factory``.
"""

from __future__ import annotations

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from sender_patterns import __version__
from sender_patterns.agent.sender_pattern_agent import SenderPatternAgent
from sender_patterns.api.sender_pattern import router as sender_pattern_router
from sender_patterns.config import Settings, get_settings
from sender_patterns.db.engine import engine_from_settings
from sender_patterns.db.schema import ensure_schema
from sender_patterns.utils import configure_logging


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    agent: SenderPatternAgent | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    engine = engine or engine_from_settings(settings)
    ensure_schema(engine)

    app = FastAPI(title="Sender Pattern Learner", version=__version__)
    app.state.settings = settings
    app.state.engine = engine
    app.state.agent = agent or SenderPatternAgent(engine, settings)

    app.include_router(sender_pattern_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
