"""
Input validators — framework-agnostic, pure functions.

These run at the validation layer, before a request reaches the auth core.
"""

from __future__ import annotations

import re
from typing import List, Tuple

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address; emails are unique case-insensitively."""
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(normalize_email(email)))


def validate_name(name: str) -> bool:
    stripped = (name or "").strip()
    return NAME_MIN_LENGTH <= len(stripped) <= NAME_MAX_LENGTH


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate a password against the account password policy.

    Rules:
    - 8 to 100 characters
    - At least one lowercase letter, one uppercase letter and one digit
    - At least one of ``!@#$%^&*``

    Returns:
        Tuple[bool, List[str]]: (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []

    if len(password) < PASSWORD_MIN_LENGTH:
        missing.append("At least 8 characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append("Maximum 100 characters")
    if not re.search(r"[a-z]", password):
        missing.append("At least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        missing.append("At least one uppercase letter")
    if not re.search(r"[0-9]", password):
        missing.append("At least one number")
    if not re.search(r"[!@#$%^&*]", password):
        missing.append("At least one special character")

    return len(missing) == 0, missing


def get_password_requirements() -> List[str]:
    """Get list of all password requirements."""
    return [
        "At least 8 characters",
        "Maximum 100 characters",
        "At least one lowercase letter",
        "At least one uppercase letter",
        "At least one number",
        "At least one special character",
    ]
