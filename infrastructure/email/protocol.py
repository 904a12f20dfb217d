"""Notifier protocol — services depend on this, not the concrete implementation."""

from typing import Any, Protocol

# Template ids understood by every Notifier
TEMPLATE_VERIFY_EMAIL = "verify_email"
TEMPLATE_RESET_PASSWORD = "reset_password"
TEMPLATE_PASSWORD_CHANGED = "password_changed"
TEMPLATE_LOGIN_ALERT = "login_alert"
TEMPLATE_WELCOME = "welcome"


class Notifier(Protocol):
    async def send(
        self, to: str, subject: str, template_id: str, data: dict[str, Any]
    ) -> bool: ...
