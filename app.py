"""
FastAPI application factory.
create_app() is the single entry point for building the app.

Only the operational surface lives here (error translation, health check);
auth routes are mounted by the embedding application via
``dependencies.get_auth_service``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from dependencies import build_auth_service
from errors import register_error_handlers
from infrastructure.http_client import HttpClient
from infrastructure.store.mongo import MongoStore
from routes.health_routes import router as health_router
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
        db = mongo_client[settings.db.db_name]
        await MongoStore(db).ensure_indexes()

        email_http = HttpClient(timeout=settings.email.email_timeout_seconds)
        auth_service = build_auth_service(settings, db, http_client=email_http)

        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings
        app.state.auth_service = auth_service
        log.info("app_started", env=settings.env)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await auth_service.flush_notifications()
        await email_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.include_router(health_router)

    return app
