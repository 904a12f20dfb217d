"""
AuthService — registration, login, MFA completion, token rotation and
password / email-verification flows.

Every login passes through the same stages::

    Submitted -> Blocked | InvalidCredential | MfaRequired | Authenticated

MfaRequired is a successful-but-incomplete outcome (``MfaChallenge``), not an
error. Expected failures raise the AppError subclasses from ``errors``;
anything else propagates untouched to the transport layer.

Notifications are best-effort: the outcome of a flow is decided before any
email is queued and never depends on delivery.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional, Union

from argon2 import PasswordHasher
from pymongo.errors import DuplicateKeyError

from config import AppSettings
from errors import (
    AccountDisabledError,
    AccountLockedError,
    AlreadyExistsError,
    EmailNotVerifiedError,
    ForbiddenError,
    InvalidCredentialError,
    InvalidMfaCodeError,
    InvalidTokenError,
    MfaStateError,
    NotFoundError,
    RateLimitError,
    SameAsCurrentError,
    TooManyAttemptsError,
    ValidationError,
)
from infrastructure.email.protocol import (
    TEMPLATE_LOGIN_ALERT,
    TEMPLATE_PASSWORD_CHANGED,
    TEMPLATE_RESET_PASSWORD,
    TEMPLATE_VERIFY_EMAIL,
    TEMPLATE_WELCOME,
)
from repositories.users import UserRepository
from schemas.dto.responses.auth import (
    AuthResult,
    BackupCodesResponse,
    MfaChallenge,
    MfaSetupResult,
    TokenPair,
    UserProfileResponse,
    VerifyEmailResult,
)
from schemas.models.token import TokenKind
from schemas.models.user import UserDoc, UserRole
from services.login_guard import BlockReason, LoginGuard
from services.mfa_service import MfaService
from services.notifications import BestEffortNotifier
from services.token_service import TokenService
from shared.crypto import hash_password, verify_password
from shared.datetime_utils import Clock, SystemClock, remaining_minutes
from shared.logging import get_logger, hash_ip
from shared.validators import normalize_email

log = get_logger(__name__)

MFA_SCOPE = "mfa"

VERIFY_EMAIL_MAX_PER_WINDOW = 3
VERIFY_EMAIL_WINDOW = timedelta(hours=1)


class AuthService:
    def __init__(
        self,
        settings: AppSettings,
        users: UserRepository,
        tokens: TokenService,
        guard: LoginGuard,
        mfa: MfaService,
        notifier: BestEffortNotifier,
        clock: Optional[Clock] = None,
        hasher: Optional[PasswordHasher] = None,
    ) -> None:
        self._settings = settings
        self._users = users
        self._tokens = tokens
        self._guard = guard
        self._mfa = mfa
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._hasher = hasher

    # ── registration ──────────────────────────────────────────────────────

    async def register(self, name: str, email: str, password: str) -> AuthResult:
        """Create an account and authenticate it immediately.

        Raises:
            AlreadyExistsError: the email is already registered.
        """
        email = normalize_email(email)
        if await self._users.exists(email):
            raise AlreadyExistsError("User already exists", field="email")

        now = self._clock.now()
        verification_required = self._settings.require_email_verification
        user = UserDoc(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password, self._hasher),
            is_email_verified=not verification_required,
            password_last_changed=now,
            created_at=now,
            updated_at=now,
        )
        try:
            user = await self._users.create(user)
        except DuplicateKeyError:
            raise AlreadyExistsError("User already exists", field="email")

        log.info("user_registered", user_id=str(user.id))

        verification_sent = None
        if verification_required:
            await self._send_verify_email(user)
            verification_sent = True
        else:
            self._notifier.notify(
                user.email,
                f"Welcome to {self._settings.app_name}",
                TEMPLATE_WELCOME,
                {"name": user.name},
            )

        return AuthResult(
            user=UserProfileResponse.from_user(user),
            tokens=await self._tokens.issue_pair(user),
            verification_sent=verification_sent,
        )

    # ── login ─────────────────────────────────────────────────────────────

    async def login(
        self, email: str, password: str, source_address: str
    ) -> Union[AuthResult, MfaChallenge]:
        """Authenticate with email and password.

        Returns an ``MfaChallenge`` instead of tokens when the account has MFA
        enabled; no successful attempt is recorded until ``verify_mfa``.

        Raises:
            TooManyAttemptsError: the source address is rate limited.
            AccountLockedError: the account lock window is still running.
            InvalidCredentialError: unknown email or wrong password.
            AccountDisabledError: the account has been deactivated.
            EmailNotVerifiedError: verification is required and pending.
        """
        email = normalize_email(email)
        await self._raise_if_blocked(email, source_address)

        user = await self._users.get_by_email(email)
        if not verify_password(
            password, user.password_hash if user else None, self._hasher
        ):
            await self._guard.record_attempt(email, source_address, False)
            log.warning("login_failed", ip_hash=hash_ip(source_address))
            raise InvalidCredentialError("Incorrect email or password")

        # a concurrent failure may have locked the account since the guard check
        now = self._clock.now()
        if user.is_locked(now):
            raise self._locked_error(user)
        if not user.is_active:
            raise AccountDisabledError("This user account has been deactivated")
        if self._settings.require_email_verification and not user.is_email_verified:
            raise EmailNotVerifiedError("Please verify your email before logging in")

        if user.mfa_enabled:
            temp_token = self._tokens.issue(
                user,
                TokenKind.ACCESS,
                timedelta(seconds=self._settings.jwt.mfa_temp_token_ttl_seconds),
                scope=MFA_SCOPE,
            )
            log.info("login_mfa_required", user_id=str(user.id))
            return MfaChallenge(temp_token=temp_token)

        return await self._complete_login(user, source_address)

    async def verify_mfa(
        self,
        temp_token: str,
        code: str,
        source_address: str,
        use_backup_code: bool = False,
    ) -> AuthResult:
        """Finish an MFA login with a TOTP code or a backup code.

        Raises:
            InvalidTokenError: bad, expired or non-MFA temp token.
            NotFoundError: the user no longer exists.
            MfaStateError: MFA is not set up for the user.
            InvalidMfaCodeError: wrong code.
        """
        payload = self._tokens.verify(temp_token, TokenKind.ACCESS)
        if payload.scope != MFA_SCOPE:
            raise InvalidTokenError("Invalid MFA token")

        user = await self._users.get_by_id(payload.id)
        if user is None:
            raise NotFoundError("User not found")

        await self._raise_if_blocked(user.email, source_address)

        if not user.mfa_enabled or await self._mfa.get_secret(user.id) is None:
            raise MfaStateError("MFA not set up for this user")

        if not await self._mfa.verify_code(user.id, code, use_backup_code):
            await self._guard.record_attempt(user.email, source_address, False)
            log.warning(
                "mfa_verification_failed",
                user_id=str(user.id),
                method="backup_code" if use_backup_code else "totp",
            )
            raise InvalidMfaCodeError(
                "Invalid backup code" if use_backup_code else "Invalid MFA code"
            )

        return await self._complete_login(user, source_address)

    async def _complete_login(self, user: UserDoc, source_address: str) -> AuthResult:
        now = self._clock.now()
        await self._guard.record_attempt(user.email, source_address, True)
        await self._users.record_login(user.id, now)
        user = user.model_copy(update={"last_login": now})

        tokens = await self._tokens.issue_pair(user)
        log.info("login_success", user_id=str(user.id), ip_hash=hash_ip(source_address))

        if self._settings.alert_on_new_login:
            self._notifier.notify(
                user.email,
                "New login to your account",
                TEMPLATE_LOGIN_ALERT,
                {
                    "name": user.name,
                    "ip_address": source_address,
                    "time": now.isoformat(),
                },
            )

        return AuthResult(user=UserProfileResponse.from_user(user), tokens=tokens)

    async def _raise_if_blocked(self, email: str, source_address: str) -> None:
        reason = await self._guard.check(email, source_address)
        if reason is BlockReason.ACCOUNT_LOCKED:
            user = await self._users.get_by_email(email)
            raise self._locked_error(user)
        if reason is BlockReason.SOURCE_RATE_LIMITED:
            raise TooManyAttemptsError(
                "Too many failed attempts. Please try again later."
            )

    def _locked_error(self, user: Optional[UserDoc]) -> AccountLockedError:
        minutes = None
        if user is not None and user.account_locked_until is not None:
            minutes = remaining_minutes(user.account_locked_until, self._clock.now())
        if minutes:
            return AccountLockedError(
                f"Account is locked. Please try again in {minutes} minutes.",
                details={"retry_after_minutes": minutes},
            )
        return AccountLockedError("Account is locked. Please try again later.")

    # ── token rotation ────────────────────────────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token: the presented token is spent, a new pair is minted.

        Raises:
            InvalidTokenError: blacklisted, unknown, invalid, or already rotated.
            NotFoundError: the user no longer exists.
        """
        if not refresh_token:
            raise ValidationError("Refresh token is required", field="refresh_token")
        if await self._tokens.is_blacklisted(refresh_token):
            log.warning("refresh_token_rejected", reason="blacklisted")
            raise InvalidTokenError("Invalid refresh token")

        payload = self._tokens.verify(refresh_token, TokenKind.REFRESH)

        user = await self._users.get_by_id(payload.id)
        if user is None:
            raise NotFoundError("User not found")
        if not user.is_active:
            raise AccountDisabledError("This user account has been deactivated")

        if not await self._tokens.revoke(refresh_token):
            # rotated by a concurrent request between the check and here
            log.warning("refresh_token_rejected", reason="already_rotated")
            raise InvalidTokenError("Invalid refresh token")

        tokens = await self._tokens.issue_pair(user)
        log.info("token_refreshed", user_id=str(user.id))
        return tokens

    async def logout(self, refresh_token: str) -> None:
        """Blacklist *refresh_token*; calling it twice is harmless."""
        if not refresh_token:
            raise ValidationError("Refresh token is required", field="refresh_token")
        await self._tokens.blacklist(refresh_token)
        log.info("logout")

    # ── passwords ─────────────────────────────────────────────────────────

    async def forgot_password(self, email: str) -> None:
        """Queue a reset email if the account exists; the caller learns nothing."""
        user = await self._users.get_by_email(normalize_email(email))
        if user is None or not user.is_active:
            log.info("password_reset_requested", found=False)
            return None

        token = await self._tokens.issue_reset(user)
        self._notifier.notify(
            user.email,
            "Reset your password",
            TEMPLATE_RESET_PASSWORD,
            {
                "name": user.name,
                "token": token,
                "reset_url": f"{self._settings.app_url}/reset-password?token={token}",
            },
        )
        log.info("password_reset_requested", found=True)
        return None

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password with a single-use reset token.

        Raises:
            InvalidOrExpiredTokenError: unknown, expired or already used token.
            NotFoundError: the user no longer exists.
        """
        user_id = await self._tokens.consume_reset(token)
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        await self._users.set_password_hash(
            user.id, hash_password(new_password, self._hasher), self._clock.now()
        )
        await self._users.reset_failed_logins(user.email)
        log.info("password_reset", user_id=str(user.id))
        await self._after_password_change(user)

    async def change_password(
        self, user_id: Any, current_password: str, new_password: str
    ) -> None:
        """Change the password of a signed-in user.

        Raises:
            NotFoundError: unknown user.
            InvalidCredentialError: *current_password* does not match.
            SameAsCurrentError: the new password equals the current one.
        """
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        if not verify_password(current_password, user.password_hash, self._hasher):
            log.warning("password_change_failed", user_id=str(user.id))
            raise InvalidCredentialError(
                "Current password is incorrect", field="current_password"
            )
        if new_password == current_password:
            raise SameAsCurrentError(
                "New password must be different from the current password",
                field="new_password",
            )

        await self._users.set_password_hash(
            user.id, hash_password(new_password, self._hasher), self._clock.now()
        )
        log.info("password_changed", user_id=str(user.id))
        await self._after_password_change(user)

    async def _after_password_change(self, user: UserDoc) -> None:
        # outstanding sessions must not outlive the old password
        await self._tokens.revoke_all_for_user(user)
        self._notifier.notify(
            user.email,
            "Your password has been changed",
            TEMPLATE_PASSWORD_CHANGED,
            {"name": user.name},
        )

    # ── email verification ────────────────────────────────────────────────

    async def verify_email(self, token: str) -> VerifyEmailResult:
        """Mark the token owner's email verified.

        A second use of a still-valid token returns ``ALREADY_VERIFIED``.

        Raises:
            InvalidOrExpiredTokenError: unknown or expired token.
            NotFoundError: the user no longer exists.
        """
        user_id = await self._tokens.resolve_verify_email(token)
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        if user.is_email_verified:
            return VerifyEmailResult.ALREADY_VERIFIED
        if not await self._users.mark_email_verified(user.id, self._clock.now()):
            return VerifyEmailResult.ALREADY_VERIFIED

        log.info("email_verified", user_id=str(user.id))
        return VerifyEmailResult.VERIFIED

    async def send_verification(self, user_id: Any) -> None:
        """Issue a fresh verify-email token for a signed-in, unverified user.

        Raises:
            NotFoundError: unknown user.
            ValidationError: the email is already verified.
            RateLimitError: too many verification emails in the last hour.
        """
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_email_verified:
            raise ValidationError("Email is already verified")

        recent = await self._tokens.count_recent_verify_email(user, VERIFY_EMAIL_WINDOW)
        if recent >= VERIFY_EMAIL_MAX_PER_WINDOW:
            raise RateLimitError(
                "Too many verification emails requested. Please try again later."
            )
        await self._send_verify_email(user)

    async def _send_verify_email(self, user: UserDoc) -> None:
        token = await self._tokens.issue_verify_email(user)
        self._notifier.notify(
            user.email,
            "Please verify your email",
            TEMPLATE_VERIFY_EMAIL,
            {
                "name": user.name,
                "token": token,
                "verify_url": f"{self._settings.app_url}/verify-email?token={token}",
            },
        )

    # ── MFA management ────────────────────────────────────────────────────

    async def setup_mfa(self, user_id: Any) -> MfaSetupResult:
        return await self._mfa.begin_setup(await self._require_user(user_id))

    async def confirm_mfa_setup(self, user_id: Any, code: str) -> BackupCodesResponse:
        user = await self._require_user(user_id)
        codes = await self._mfa.confirm_setup(user.id, code)
        return BackupCodesResponse(backup_codes=codes)

    async def disable_mfa(
        self, user_id: Any, code: str, use_backup_code: bool = False
    ) -> None:
        await self._mfa.disable(await self._require_user(user_id), code, use_backup_code)

    async def regenerate_backup_codes(self, user_id: Any, code: str) -> BackupCodesResponse:
        user = await self._require_user(user_id)
        return BackupCodesResponse(
            backup_codes=await self._mfa.regenerate_backup_codes(user, code)
        )

    # ── session ───────────────────────────────────────────────────────────

    async def get_session(self, user_id: Any) -> UserProfileResponse:
        return UserProfileResponse.from_user(await self._require_user(user_id))

    async def authenticate(self, access_token: str) -> UserDoc:
        """Resolve the user behind a bearer access token.

        Raises:
            InvalidTokenError: bad token, MFA temp token, deleted or
                deactivated user, or a token minted before the last
                password change.
            EmailNotVerifiedError: verification is required and pending.
        """
        if not access_token:
            raise InvalidTokenError("You are not logged in")

        payload = self._tokens.verify(access_token, TokenKind.ACCESS)
        if payload.scope is not None:
            raise InvalidTokenError("Invalid or expired token")

        user = await self._users.get_by_id(payload.id)
        if user is None:
            raise InvalidTokenError("The user belonging to this token no longer exists")
        if not user.is_active:
            raise InvalidTokenError("This user account has been deactivated")
        if self._settings.require_email_verification and not user.is_email_verified:
            raise EmailNotVerifiedError("Please verify your email to access this resource")

        if user.password_last_changed is not None and int(
            user.password_last_changed.timestamp()
        ) > int(payload.issued_at.timestamp()):
            raise InvalidTokenError("Password has been changed. Please log in again")

        return user

    @staticmethod
    def require_role(user: UserDoc, *roles: Union[UserRole, str]) -> None:
        """Raise ForbiddenError unless *user* holds one of *roles*."""
        allowed = {UserRole(r) for r in roles}
        if user.role not in allowed:
            raise ForbiddenError("You do not have permission to perform this action")

    async def _require_user(self, user_id: Any) -> UserDoc:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def flush_notifications(self) -> None:
        """Wait for queued emails to finish sending."""
        await self._notifier.drain()
