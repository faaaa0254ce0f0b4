"""
Book Club API server.

``create_app`` builds a FastAPI application with its settings and database
manager injected explicitly, so tests can run any number of isolated apps
side by side. ``main`` is the console entry point and serves the configured
app with uvicorn.
"""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import register_exception_handlers, routers
from .config import Settings, get_config
from .database import DatabaseManager
from .observability import initialize_observability
from .observability.middleware import RequestTracingMiddleware

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, db_manager: DatabaseManager | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; defaults to the process-wide settings
        db_manager: Storage; defaults to a manager for ``settings.get_database_url()``
    """
    settings = settings or get_config()
    db_manager = db_manager or DatabaseManager(settings.get_database_url())

    initialize_observability(settings)
    db_manager.init_database()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.environment)
        yield
        logger.info("Shutting down, closing database connections")
        db_manager.close()

    app = FastAPI(
        title="Book Club API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db_manager = db_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTracingMiddleware)

    register_exception_handlers(app)
    for router in routers:
        app.include_router(router)

    return app


def main() -> None:
    """
    Entry point for the ``book-club-api`` command.

    Logging goes to stderr; ``BOOK_CLUB_DEBUG=true`` turns on debug output.
    uvicorn owns SIGINT/SIGTERM; shutdown runs through the app lifespan, which
    disposes the database engine.
    """
    settings = get_config()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")

    try:
        logger.info("=" * 60)
        logger.info("Book Club API")
        logger.info("Version: %s", settings.app_version)
        logger.info("Listening on: http://%s:%s", settings.http_host, settings.http_port)
        logger.info("Database: %s", settings.get_database_url())
        logger.info("=" * 60)

        uvicorn.run(
            create_app(settings),
            host=settings.http_host,
            port=settings.http_port,
            log_config=None,
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start Book Club API")
        sys.exit(1)


if __name__ == "__main__":
    main()
