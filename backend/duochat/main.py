"""Duochat Backend Application.

This is the main entry point for the Duochat backend service.
Duochat anonymously pairs strangers for one-to-one conversation and relays
their chat messages and WebRTC handshake, without inspecting or storing
either. A bot stands in when no human turns up in time.

Modules:
    - match: WebSocket matchmaking, chat relay and signaling relay
    - config: YAML-backed settings
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from duochat.config import AppConfig, get_config
from duochat.match.engine import MatchEngine
from duochat.match.router import router as match_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence per-request access lines; connection events are logged by the engine.
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config: AppConfig = app.state.config

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in duochat.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    if config.match.bot_fallback_enabled:
        logger.info(
            f"Bot fallback enabled after {config.match.bot_fallback_seconds}s of waiting"
        )
    else:
        logger.info("Bot fallback disabled")

    yield  # Application runs here

    # Shutdown
    engine: MatchEngine = app.state.engine
    for handle in engine.registry:
        engine.disconnect(handle)
    logger.info("Application shutdown complete")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application with its own matchmaking engine.

    Args:
        config: Settings to use. Defaults to the process-wide config.

    Returns:
        FastAPI app with ``state.engine`` and ``state.config`` set.
    """
    config = config or get_config()

    app = FastAPI(
        title="Duochat API",
        description="Anonymous one-to-one matchmaking with chat and WebRTC signaling relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.engine = MatchEngine(config.match)

    app.include_router(match_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    """Serve :data:`app` with uvicorn on the configured host and port."""
    config = get_config()
    uvicorn.run(app, host=config.server.host, port=config.server.port)
