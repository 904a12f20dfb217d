"""
Service wiring and FastAPI dependency providers.

build_auth_service() assembles the whole auth core over one async MongoDB
database; the app factory calls it once at startup and stores the result on
app.state. Tests call it directly with a mongomock-motor database, a frozen
clock and a fake notifier.
"""

from __future__ import annotations

from typing import Optional

from argon2 import PasswordHasher
from fastapi import Request
from pymongo.asynchronous.database import AsyncDatabase

from config import AppSettings
from infrastructure.email.protocol import Notifier
from infrastructure.email.zeptomail import ZeptoMailNotifier
from infrastructure.http_client import HttpClient
from infrastructure.store.mongo import MongoStore
from repositories.login_attempts import LoginAttemptRepository
from repositories.mfa import MfaRepository
from repositories.tokens import TokenRepository
from repositories.users import UserRepository
from services.auth_service import AuthService
from services.login_guard import LoginGuard
from services.mfa_service import MfaService
from services.notifications import BestEffortNotifier
from services.token_service import TokenService
from shared.datetime_utils import Clock, SystemClock


def build_auth_service(
    settings: AppSettings,
    db: AsyncDatabase,
    *,
    notifier: Optional[Notifier] = None,
    http_client: Optional[HttpClient] = None,
    clock: Optional[Clock] = None,
    hasher: Optional[PasswordHasher] = None,
) -> AuthService:
    """Wire repositories and services over *db*.

    Without an explicit *notifier*, email goes to ZeptoMail over *http_client*
    (the caller owns and closes it).
    """
    clock = clock or SystemClock()
    store = MongoStore(db)
    users = UserRepository(store)

    if notifier is None:
        notifier = ZeptoMailNotifier(
            settings.email,
            http_client or HttpClient(timeout=settings.email.email_timeout_seconds),
            app_name=settings.app_name,
            app_url=settings.app_url,
        )

    return AuthService(
        settings=settings,
        users=users,
        tokens=TokenService(settings.jwt, TokenRepository(store), clock),
        guard=LoginGuard(
            settings.lockout, users, LoginAttemptRepository(store), clock
        ),
        mfa=MfaService(settings.mfa, MfaRepository(store), users, clock, hasher),
        notifier=BestEffortNotifier(notifier),
        clock=clock,
        hasher=hasher,
    )


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


async def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service
