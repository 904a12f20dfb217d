"""
MFA service — TOTP secrets and backup codes.

Per-user state machine::

    Unset --begin_setup--> PendingVerification --confirm_setup--> Enabled
      ^                                                              |
      +----------------------------disable---------------------------+

Codes follow RFC 6238 defaults (6 digits, 30 s step) with ±1 step of
tolerance. Backup codes are random hex strings stored as argon2 hashes; each
can be used once, and once all are spent only TOTP remains.
"""

from __future__ import annotations

import base64
import io
from typing import Optional

import pyotp
import qrcode
from argon2 import PasswordHasher
from bson import ObjectId

from config import MfaSettings
from errors import InvalidMfaCodeError, MfaStateError
from repositories.mfa import MfaRepository
from repositories.users import UserRepository
from schemas.dto.responses.auth import MfaSetupResult
from schemas.models.user import UserDoc
from shared.crypto import hash_password, verify_password
from shared.datetime_utils import Clock, SystemClock
from shared.generators import generate_backup_codes
from shared.logging import get_logger

log = get_logger(__name__)

TOTP_DIGITS = 6


def qr_code_data_uri(otpauth_url: str) -> str:
    """Render *otpauth_url* as a PNG QR code data URI."""
    img = qrcode.make(otpauth_url)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


class MfaService:
    def __init__(
        self,
        settings: MfaSettings,
        records: MfaRepository,
        users: UserRepository,
        clock: Optional[Clock] = None,
        hasher: Optional[PasswordHasher] = None,
    ) -> None:
        self._settings = settings
        self._records = records
        self._users = users
        self._clock = clock or SystemClock()
        self._hasher = hasher

    async def begin_setup(self, user: UserDoc) -> MfaSetupResult:
        """Start (or restart) setup with a fresh secret; fails when already enabled."""
        if user.mfa_enabled:
            raise MfaStateError("MFA is already enabled for this account")

        secret = pyotp.random_base32()
        await self._records.save_pending(user.id, secret, self._clock.now())
        otpauth_url = pyotp.TOTP(secret).provisioning_uri(
            name=user.email, issuer_name=self._settings.mfa_issuer_name
        )
        log.info("mfa_setup_started", user_id=str(user.id))
        return MfaSetupResult(
            secret=secret,
            otpauth_url=otpauth_url,
            qr_code=qr_code_data_uri(otpauth_url),
        )

    async def confirm_setup(self, user_id: ObjectId, code: str) -> list[str]:
        """Enable MFA after a correct code; returns the backup codes in clear, once."""
        record = await self._records.get(user_id)
        if record is None:
            raise MfaStateError("MFA setup not initialized")
        if record.verified:
            raise MfaStateError("MFA is already enabled for this account")

        if not self.challenge(record.secret, code):
            log.warning("mfa_setup_code_invalid", user_id=str(user_id))
            raise InvalidMfaCodeError("Invalid verification code")

        codes = generate_backup_codes(self._settings.mfa_backup_code_count)
        now = self._clock.now()
        if not await self._records.mark_verified(
            user_id, record.secret, self._hash_codes(codes), now
        ):
            # setup was restarted with a new secret while this code was checked
            raise MfaStateError("MFA setup was restarted; scan the new code")
        await self._users.set_mfa_enabled(user_id, True, now)

        log.info("mfa_enabled", user_id=str(user_id))
        return codes

    def challenge(self, secret: str, code: str) -> bool:
        """Stateless TOTP check of *code* against *secret*."""
        code = (code or "").strip()
        if len(code) != TOTP_DIGITS or not code.isdigit():
            return False
        return pyotp.TOTP(secret).verify(
            code,
            for_time=self._clock.now(),
            valid_window=self._settings.mfa_valid_window,
        )

    async def get_secret(self, user_id: ObjectId) -> Optional[str]:
        record = await self._records.get(user_id)
        return record.secret if record else None

    async def consume_backup_code(self, user_id: ObjectId, code: str) -> bool:
        """Use one backup code; a matched code is removed and never valid again."""
        record = await self._records.get(user_id)
        code = (code or "").strip().lower()
        if record is None or not code:
            return False

        for stored_hash in record.backup_codes:
            if verify_password(code, stored_hash, self._hasher):
                if await self._records.remove_backup_code(user_id, stored_hash):
                    log.info(
                        "mfa_backup_code_used",
                        user_id=str(user_id),
                        remaining=len(record.backup_codes) - 1,
                    )
                    return True
                # a concurrent request spent it first
                return False
        return False

    async def verify_code(self, user_id: ObjectId, code: str, use_backup_code: bool) -> bool:
        """Check a second factor: TOTP by default, or a backup code."""
        if use_backup_code:
            return await self.consume_backup_code(user_id, code)
        secret = await self.get_secret(user_id)
        return bool(secret) and self.challenge(secret, code)

    async def disable(self, user: UserDoc, code: str, use_backup_code: bool) -> None:
        """Disable MFA after one more successful factor; the record is deleted."""
        if not user.mfa_enabled:
            raise MfaStateError("MFA is not enabled for this account")
        if await self._records.get(user.id) is None:
            raise MfaStateError("MFA setup not found")

        if not await self.verify_code(user.id, code, use_backup_code):
            log.warning("mfa_disable_code_invalid", user_id=str(user.id))
            raise InvalidMfaCodeError(
                "Invalid backup code" if use_backup_code else "Invalid verification code"
            )

        await self._users.set_mfa_enabled(user.id, False, self._clock.now())
        await self._records.delete(user.id)
        log.info("mfa_disabled", user_id=str(user.id))

    async def regenerate_backup_codes(self, user: UserDoc, code: str) -> list[str]:
        """Replace all backup codes; gated on a valid TOTP code."""
        if not user.mfa_enabled:
            raise MfaStateError("MFA is not enabled for this account")
        secret = await self.get_secret(user.id)
        if not secret:
            raise MfaStateError("MFA setup not found")
        if not self.challenge(secret, code):
            raise InvalidMfaCodeError("Invalid verification code")

        codes = generate_backup_codes(self._settings.mfa_backup_code_count)
        await self._records.replace_backup_codes(user.id, self._hash_codes(codes))
        log.info("mfa_backup_codes_regenerated", user_id=str(user.id))
        return codes

    async def remaining_backup_codes(self, user_id: ObjectId) -> int:
        record = await self._records.get(user_id)
        return len(record.backup_codes) if record else 0

    def _hash_codes(self, codes: list[str]) -> list[str]:
        return [hash_password(c, self._hasher) for c in codes]
