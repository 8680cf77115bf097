"""FastAPI application entrypoint. No business logic; only wiring and middleware.

Run with: uvicorn backoffice.main:asgi_app
(`asgi_app` serves Socket.IO on SOCKETIO_PATH and forwards everything else to FastAPI.)
"""

from dotenv import load_dotenv

load_dotenv()

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from backoffice.api.v1 import router as v1_router
from backoffice.core.config import Settings, get_settings
from backoffice.core.database import SessionLocal
from backoffice.core.exceptions import register_exception_handlers
from backoffice.core.logging import setup_logging
from backoffice.realtime.gateway import RealtimeGateway, create_socket_server
from backoffice.realtime.presence import PresenceStore
from backoffice.services.credentials import CredentialService
from backoffice.services.mailer import SmtpMailer


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
    credentials: CredentialService | None = None,
    presence: PresenceStore | None = None,
) -> FastAPI:
    """Build the API with its credential service and realtime gateway constructed once."""
    settings = settings or get_settings()
    session_factory = session_factory or SessionLocal

    app = FastAPI(
        title="Bakery Back Office API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else list(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.credentials = credentials or CredentialService(settings, SmtpMailer(settings))
    app.state.gateway = RealtimeGateway(
        create_socket_server(settings),
        settings,
        presence=presence,
        session_factory=session_factory,
    )

    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Bakery Back Office API"}

    return app


def create_asgi_app(app: FastAPI) -> socketio.ASGIApp:
    """Wrap the API so Socket.IO traffic reaches the gateway's server."""
    return socketio.ASGIApp(
        app.state.gateway.sio,
        other_asgi_app=app,
        socketio_path=app.state.settings.SOCKETIO_PATH,
    )


setup_logging(get_settings().LOG_LEVEL)

app = create_app()
asgi_app = create_asgi_app(app)
