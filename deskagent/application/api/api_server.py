from contextlib import asynccontextmanager
from typing import Optional
import asyncio

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deskagent.application.api.route.agent import router as agent_router
from deskagent.application.websocket.ws_server import connection_manager, router as ws_router
from deskagent.domain.models.agent_state import utcnow
from deskagent.infrastructure.config.settings import Settings, get_settings
from deskagent.infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start background tasks, disconnect everyone on shutdown"""

    health_task = asyncio.create_task(connection_manager.health_check())
    logger.info("Agent server started")

    yield

    health_task.cancel()
    for session_id in list(connection_manager.active_connections.keys()):
        await connection_manager.disconnect(session_id)

    logger.info("Agent server shutdown")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the HTTP + WebSocket application"""

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    app = FastAPI(title="Desk Agent Server", lifespan=lifespan)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(agent_router)
    app.include_router(ws_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "active_connections": len(connection_manager.active_connections),
            "timestamp": utcnow().isoformat()
        }

    @app.get("/metrics")
    async def metrics_summary():
        return metrics.get_metrics_summary()

    return app


def main():
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
