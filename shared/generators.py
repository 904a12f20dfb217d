"""
Random code and token generators — pure, side-effect-free functions.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import secrets
import uuid


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random hex token.

    Used for single-use password reset and email verification tokens.

    Args:
        length: Number of random bytes (default 32, i.e. 64 hex characters).
    """
    return secrets.token_hex(length)


def generate_backup_code(length: int = 4) -> str:
    """Generate one MFA backup code as a random hex string.

    Args:
        length: Number of random bytes (default 4, i.e. 8 hex characters).
    """
    return secrets.token_hex(length)


def generate_backup_codes(count: int = 10) -> list[str]:
    """Generate *count* distinct MFA backup codes."""
    codes: list[str] = []
    while len(codes) < count:
        code = generate_backup_code()
        if code not in codes:
            codes.append(code)
    return codes


def generate_token_id() -> str:
    """Unique JWT id, so two tokens minted in the same second never collide."""
    return uuid.uuid4().hex
