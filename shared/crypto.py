"""
Cryptographic helpers — password hashing and token hashing.

Uses argon2 for passwords and MFA backup codes (via argon2-cffi) and SHA-256
for token hashing. Password comparison is a pure function over an explicit
hash; user records carry no behaviour of their own.
"""

from __future__ import annotations

import hashlib
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError

_password_hasher = PasswordHasher()

# Verified against when no user exists, so unknown-email logins cost the same
# argon2 work as known ones.
_DUMMY_HASH = _password_hasher.hash("dummy-password-for-timing")


def hash_password(
    plain_password: str, hasher: Optional[PasswordHasher] = None
) -> str:
    """Hash *plain_password* with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return (hasher or _password_hasher).hash(plain_password)


def verify_password(
    plain_password: str,
    password_hash: Optional[str],
    hasher: Optional[PasswordHasher] = None,
) -> bool:
    """Verify *plain_password* against an argon2 *password_hash*.

    argon2 compares digests in constant time.

    Returns:
        ``True`` if the password matches, ``False`` for any failure
        (wrong password, missing or malformed hash).
    """
    hasher = hasher or _password_hasher
    if not password_hash:
        try:
            hasher.verify(_DUMMY_HASH, plain_password)
        except (VerificationError, InvalidHash):
            pass
        return False
    try:
        return hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHash):
        return False


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash refresh, reset and verify tokens before storing them in the
    database so the plaintext is never persisted.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


