"""
Login-attempt guard — brute-force protection for password logins.

Two independent policies:

- per account: ``max_failed_login_attempts`` consecutive failures lock the
  account for ``account_lock_minutes``; a successful login resets the counter.
- per source address: ``ip_max_failed_attempts`` failures within the trailing
  ``ip_window_minutes`` block the address, across all emails. This is a
  sliding window recomputed from the audit log on every call and is not reset
  by a success.

The first stops targeted brute force on one account from many addresses; the
second stops credential stuffing across many accounts from one address.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Optional

from config import LockoutSettings
from repositories.login_attempts import LoginAttemptRepository
from repositories.users import UserRepository
from schemas.models.login_attempt import LoginAttemptDoc
from shared.datetime_utils import Clock, SystemClock
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


class BlockReason(str, Enum):
    ACCOUNT_LOCKED = "account_locked"
    SOURCE_RATE_LIMITED = "source_rate_limited"


class LoginGuard:
    def __init__(
        self,
        settings: LockoutSettings,
        users: UserRepository,
        attempts: LoginAttemptRepository,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings
        self._users = users
        self._attempts = attempts
        self._clock = clock or SystemClock()

    async def record_attempt(self, email: str, source_address: str, success: bool) -> None:
        now = self._clock.now()
        await self._attempts.append(
            LoginAttemptDoc(
                ip_address=source_address,
                email=email,
                successful=success,
                timestamp=now,
            )
        )

        if success:
            await self._users.reset_failed_logins(email)
            return

        user = await self._users.increment_failed_logins(email, now)
        if user is None:
            return

        threshold = self._settings.max_failed_login_attempts
        if user.failed_login_attempts >= threshold:
            locked_until = now + timedelta(minutes=self._settings.account_lock_minutes)
            if await self._users.lock_if_threshold_reached(email, threshold, locked_until):
                log.warning(
                    "account_locked",
                    user_id=str(user.id),
                    failed_attempts=user.failed_login_attempts,
                    locked_until=locked_until.isoformat(),
                )

    async def check(self, email: str, source_address: str) -> Optional[BlockReason]:
        """Return why a login from *source_address* for *email* is blocked, if it is.

        Clears an expired account lock as a side effect.
        """
        now = self._clock.now()

        user = await self._users.get_by_email(email)
        if user is not None and user.account_locked:
            if user.is_locked(now):
                return BlockReason.ACCOUNT_LOCKED
            if await self._users.clear_expired_lock(email, now):
                log.info("account_lock_expired", user_id=str(user.id))

        window_start = now - timedelta(minutes=self._settings.ip_window_minutes)
        failures = await self._attempts.count_failures_from(source_address, window_start)
        if failures >= self._settings.ip_max_failed_attempts:
            log.warning(
                "source_rate_limited",
                ip_hash=hash_ip(source_address),
                failures=failures,
            )
            return BlockReason.SOURCE_RATE_LIMITED

        return None

    async def is_blocked(self, email: str, source_address: str) -> bool:
        return await self.check(email, source_address) is not None
