# booktracker/main.py

import sys
from pathlib import Path

import pydantic
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from booktracker import __version__
from booktracker.api import admin, auth, books, site
from booktracker.config import Settings
from booktracker.core.errors import install_error_handlers
from booktracker.core.lifecycle import Lifecycle, bind_listener, prepare
from booktracker.core.logging import configure, get_logger
from booktracker.database import ConnectionEvent, MongoConnector
from booktracker.models import ensure_indexes


logger = get_logger(__name__)


def create_app(settings: Settings, connector: MongoConnector, lifespan=None) -> FastAPI:
    """
    Builds the application around an already constructed connector.
    Nothing here touches the network.
    """
    app = FastAPI(title="Book Tracker", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.connector = connector

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    install_error_handlers(app, development=settings.development)

    app.include_router(site.router)
    app.include_router(auth.router)
    app.include_router(books.router)
    app.include_router(admin.router)

    # Static files last so they never shadow API routes
    public = Path(settings.public_dir)
    if (public / "images").is_dir():
        app.mount("/images", StaticFiles(directory=public / "images"), name="images")
    if public.is_dir():
        app.mount("/", StaticFiles(directory=public), name="public")
    return app


def _ensure_indexes(connector: MongoConnector, payload):
    ensure_indexes(connector.database)


def run(settings: Settings | None = None) -> int:
    """
    Boots the server and returns the process exit code.
    """
    try:
        settings = settings or Settings.from_env()
    except pydantic.ValidationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    configure(settings.log_level)
    logger.info("Configuration: %s", settings.summary())

    outcome = prepare(settings)
    if not outcome.ok:
        return outcome.exit_code

    connector = MongoConnector.from_settings(settings)
    connector.on(ConnectionEvent.CONNECTED, _ensure_indexes)
    lifecycle = Lifecycle(connector)
    app = create_app(settings, connector, lifespan=lifecycle.lifespan)
    server = uvicorn.Server(uvicorn.Config(app, log_level=settings.log_level.lower()))
    lifecycle.server = server

    outcome, sock = bind_listener(settings.host, settings.port)
    if not outcome.ok:
        return outcome.exit_code

    logger.info("Server running on port %d", settings.port)
    logger.info("API available at http://localhost:%d/api", settings.port)
    logger.info("To test the API, visit: http://localhost:%d/api/test", settings.port)
    try:
        server.run(sockets=[sock])
    except KeyboardInterrupt:
        # uvicorn re-raises SIGINT after its graceful shutdown
        pass
    finally:
        sock.close()
    return lifecycle.exit_code


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
