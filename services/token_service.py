"""
Token service — signed access/refresh tokens and single-use side-channel tokens.

Signed tokens are HS256 JWTs. access, reset and verify tokens are signed with
the access secret; refresh tokens with a separate refresh secret. Every token
carries its kind in the ``type`` claim and verification insists on the
expected kind, so a refresh token is never accepted where an access token is
expected and vice versa.

Reset and verify-email tokens are random strings, stored server-side as
SHA-256 hashes with an expiry; they are not self-verifying.

Expiry is checked against the injected clock rather than PyJWT's wall clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from bson import ObjectId

from config import JWTSettings
from errors import InvalidOrExpiredTokenError, InvalidTokenError
from repositories.tokens import TokenRepository
from schemas.dto.responses.auth import TokenPair
from schemas.models.token import (
    RefreshTokenDoc,
    ResetTokenDoc,
    TokenKind,
    VerifyEmailTokenDoc,
)
from schemas.models.user import UserDoc
from shared.crypto import hash_token
from shared.datetime_utils import Clock, SystemClock
from shared.generators import generate_secure_token, generate_token_id
from shared.logging import get_logger

log = get_logger(__name__)

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenPayload:
    id: str
    email: str
    role: str
    kind: TokenKind
    issued_at: datetime
    expires_at: datetime
    token_id: str
    scope: Optional[str] = None


class TokenService:
    def __init__(
        self,
        settings: JWTSettings,
        tokens: TokenRepository,
        clock: Optional[Clock] = None,
    ) -> None:
        if not settings.jwt_access_secret or not settings.jwt_refresh_secret:
            raise RuntimeError(
                "JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must both be set"
            )
        if settings.jwt_access_secret == settings.jwt_refresh_secret:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        self._settings = settings
        self._tokens = tokens
        self._clock = clock or SystemClock()

    def _secret_for(self, kind: TokenKind) -> str:
        if kind is TokenKind.REFRESH:
            return self._settings.jwt_refresh_secret
        return self._settings.jwt_access_secret

    def default_ttl(self, kind: TokenKind) -> timedelta:
        seconds = {
            TokenKind.ACCESS: self._settings.access_token_ttl_seconds,
            TokenKind.REFRESH: self._settings.refresh_token_ttl_seconds,
            TokenKind.RESET: self._settings.reset_token_ttl_seconds,
            TokenKind.VERIFY: self._settings.verify_email_token_ttl_seconds,
        }[kind]
        return timedelta(seconds=seconds)

    # ── signed tokens ─────────────────────────────────────────────────────

    def issue(
        self,
        user: UserDoc,
        kind: TokenKind,
        ttl: Optional[timedelta] = None,
        *,
        scope: Optional[str] = None,
    ) -> str:
        """Mint a signed token of *kind* for *user*."""
        kind = TokenKind(kind)
        now = self._clock.now()
        expires = now + (ttl if ttl is not None else self.default_ttl(kind))
        claims = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "type": kind.value,
            "iat": int(now.timestamp()),
            "exp": int(expires.timestamp()),
            "jti": generate_token_id(),
        }
        if scope is not None:
            claims["scope"] = scope
        return jwt.encode(claims, self._secret_for(kind), algorithm=_ALGORITHM)

    def verify(self, token: str, expected_kind: TokenKind) -> TokenPayload:
        """Decode *token* and check signature, issuer, audience, expiry and kind.

        Raises:
            InvalidTokenError: on any failure.
        """
        expected_kind = TokenKind(expected_kind)
        try:
            claims = jwt.decode(
                token,
                self._secret_for(expected_kind),
                algorithms=[_ALGORITHM],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={
                    "require": ["exp", "iat", "sub", "type"],
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.PyJWTError as e:
            log.warning(
                "token_verify_failed",
                expected_kind=expected_kind.value,
                reason=type(e).__name__,
            )
            raise InvalidTokenError("Invalid or expired token") from e

        if claims.get("type") != expected_kind.value:
            log.warning(
                "token_verify_failed",
                expected_kind=expected_kind.value,
                reason="kind_mismatch",
            )
            raise InvalidTokenError("Invalid token type")

        if int(self._clock.now().timestamp()) >= int(claims["exp"]):
            log.info("token_verify_failed", expected_kind=expected_kind.value, reason="expired")
            raise InvalidTokenError("Invalid or expired token")

        return TokenPayload(
            id=str(claims["sub"]),
            email=claims.get("email", ""),
            role=claims.get("role", ""),
            kind=expected_kind,
            issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            token_id=claims.get("jti", ""),
            scope=claims.get("scope"),
        )

    # ── refresh tokens ────────────────────────────────────────────────────

    async def issue_refresh(self, user: UserDoc) -> str:
        """Mint a refresh token and record it for later revocation."""
        now = self._clock.now()
        ttl = self.default_ttl(TokenKind.REFRESH)
        token = self.issue(user, TokenKind.REFRESH, ttl)
        await self._tokens.add_refresh(
            RefreshTokenDoc(
                token_hash=hash_token(token),
                user_id=user.id,
                expires_at=now + ttl,
                blacklisted=False,
                created_at=now,
            )
        )
        return token

    async def issue_pair(self, user: UserDoc) -> TokenPair:
        return TokenPair(
            access=self.issue(user, TokenKind.ACCESS),
            refresh=await self.issue_refresh(user),
        )

    async def revoke(self, token: str) -> bool:
        """Blacklist *token*; True only for the one caller that revoked it."""
        return await self._tokens.blacklist_refresh(hash_token(token))

    async def blacklist(self, token: str) -> None:
        """Blacklist *token*; repeated calls and unknown tokens are no-ops."""
        if await self.revoke(token):
            log.info("refresh_token_blacklisted")

    async def is_blacklisted(self, token: str) -> bool:
        """Fail-closed: an unknown token counts as blacklisted."""
        record = await self._tokens.get_refresh(hash_token(token))
        return record is None or record.blacklisted

    async def revoke_all_for_user(self, user: UserDoc) -> int:
        """Blacklist every outstanding refresh token of *user*."""
        revoked = await self._tokens.blacklist_all_refresh_for_user(user.id)
        if revoked:
            log.info("refresh_tokens_revoked", user_id=str(user.id), count=revoked)
        return revoked

    # ── single-use side-channel tokens ────────────────────────────────────

    async def issue_reset(self, user: UserDoc) -> str:
        now = self._clock.now()
        token = generate_secure_token()
        await self._tokens.add_reset(
            ResetTokenDoc(
                token_hash=hash_token(token),
                user_id=user.id,
                expires_at=now + self.default_ttl(TokenKind.RESET),
                used=False,
                created_at=now,
            )
        )
        log.info("reset_token_created", user_id=str(user.id))
        return token

    async def consume_reset(self, token: str) -> ObjectId:
        """Atomically validate and mark a reset token used.

        Raises:
            InvalidOrExpiredTokenError: unknown, expired or already used.
        """
        record = await self._tokens.consume_reset(hash_token(token), self._clock.now())
        if record is None:
            log.warning("reset_token_rejected")
            raise InvalidOrExpiredTokenError("Invalid or expired token")
        return record.user_id

    async def issue_verify_email(self, user: UserDoc) -> str:
        now = self._clock.now()
        token = generate_secure_token()
        await self._tokens.add_verify_email(
            VerifyEmailTokenDoc(
                token_hash=hash_token(token),
                user_id=user.id,
                expires_at=now + self.default_ttl(TokenKind.VERIFY),
                created_at=now,
            )
        )
        log.info("verify_email_token_created", user_id=str(user.id))
        return token

    async def resolve_verify_email(self, token: str) -> ObjectId:
        """Return the user id of an unexpired verify-email token.

        Raises:
            InvalidOrExpiredTokenError: unknown or expired.
        """
        record = await self._tokens.find_valid_verify_email(
            hash_token(token), self._clock.now()
        )
        if record is None:
            log.warning("verify_email_token_rejected")
            raise InvalidOrExpiredTokenError("Invalid or expired token")
        return record.user_id

    async def count_recent_verify_email(self, user: UserDoc, window: timedelta) -> int:
        return await self._tokens.count_recent_verify_email(
            user.id, self._clock.now() - window
        )
