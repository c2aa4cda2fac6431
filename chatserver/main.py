"""
FastAPI Application Factory
===========================

Entry point for the realtime chat service.

Architecture:
    Clients → /ws (gateway) → Hub + ActionDispatcher → MongoDB
    Clients → /v1/auth/users/* (HTTP) → UserService → MongoDB

Routers:
    - /v1/auth/users/* : Registration, email verification, login
    - /ws              : WebSocket gateway for live chat
    - /realtime/status : Live connection statistics
    - /health          : Health check endpoint

Environment Variables Required:
    - JWT_SECRET: Secret for signing session JWTs (min 32 characters)
    - MONGODB_URI: Document store connection string (default: mongodb://localhost:27017)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn chatserver.main:create_application --factory --reload --port 8080

    Installed:
        chatserver
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth import auth_router
from .auth.service import UserService
from .config import Settings, get_settings
from .errors import register_exception_handlers
from .realtime import ActionDispatcher, Hub, realtime_router
from .store import ConversationService, MessageService, create_client, ensure_indexes

VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Connect to the document store (unless a database was injected)
        - Create the indexes the stores rely on
        - Build the stores, the dispatcher and the hub, and start the hub

    Shutdown tasks:
        - Stop the hub, closing every live connection
        - Close the store client
    """
    settings: Settings = app.state.settings
    logger = logging.getLogger("chatserver.main")

    logger.info(
        "Starting chat service",
        extra={
            "service": settings.SERVICE_NAME,
            "database": settings.MONGODB_DATABASE,
            "log_level": settings.LOG_LEVEL,
        },
    )

    client = None
    database = getattr(app.state, "database", None)
    if database is None:
        client = create_client(settings)
        database = client[settings.MONGODB_DATABASE]
        app.state.database = database

    await ensure_indexes(database)
    logger.info("Document store indexes ensured")

    timeout = settings.STORE_TIMEOUT_SECONDS
    app.state.conversation_service = ConversationService(database, timeout=timeout)
    app.state.message_service = MessageService(database, timeout=timeout)
    app.state.user_service = UserService(database, settings)
    app.state.dispatcher = ActionDispatcher(
        app.state.conversation_service,
        app.state.message_service,
    )

    hub = Hub()
    await hub.start()
    app.state.hub = hub

    logger.info(
        "Chat service started successfully",
        extra={"service": settings.SERVICE_NAME, "version": VERSION},
    )

    yield

    # Shutdown
    logger.info("Shutting down chat service")

    try:
        await hub.stop()
    except Exception as e:
        logger.error(f"Error stopping hub: {e}")

    if client is not None:
        await client.close()
        app.state.database = None
        logger.info("Closed document store client")

    logger.info("Chat service shutdown complete")


def create_application(
    settings: Optional[Settings] = None,
    database=None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use instead of the environment-loaded ones
        database: Pre-built database handle (tests inject an in-memory one)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Chat Service",
        description="Realtime chat over WebSocket with MongoDB-backed conversations",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings.SERVICE_NAME)

    app.include_router(auth_router)
    app.include_router(realtime_router, tags=["Real-time Communications"])

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, str]:
        return {"message": "Hello World"}

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        """
        Health check endpoint.

        Returns:
            dict: Service health information
        """
        return {
            "status": "ok",
            "service": settings.SERVICE_NAME,
            "version": VERSION,
        }

    return app


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    settings = get_settings()

    uvicorn.run(
        "chatserver.main:create_application",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
