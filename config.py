"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Decision on JWT secrets: access, reset and verify tokens share
JWT_ACCESS_SECRET; refresh tokens use JWT_REFRESH_SECRET so a token of one
family can never validate against the other. JWT_SECRET is accepted as a
fallback for the access secret (handled in JWTSettings via model_validator).
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "auth-service"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "auth-service"
    jwt_audience: str = "auth-service.api"
    jwt_access_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_secret: str = ""  # fallback for the access secret

    access_token_ttl_seconds: int = 900
    # 7 days; deployments may raise this up to 30 days
    refresh_token_ttl_seconds: int = 604_800
    reset_token_ttl_seconds: int = 3600
    verify_email_token_ttl_seconds: int = 86_400
    mfa_temp_token_ttl_seconds: int = 300

    @model_validator(mode="after")
    def _fill_access_secret(self) -> "JWTSettings":
        if not self.jwt_access_secret and self.jwt_secret:
            self.jwt_access_secret = self.jwt_secret
        return self


class LockoutSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    max_failed_login_attempts: int = 5
    account_lock_minutes: int = 15
    ip_max_failed_attempts: int = 10
    ip_window_minutes: int = 60


class MfaSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mfa_issuer_name: str = ""  # defaults to AppSettings.app_name
    mfa_backup_code_count: int = 10
    mfa_valid_window: int = 1


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@example.com"
    zepto_from_name: str = "auth-service"
    email_timeout_seconds: float = 10.0

    # ZeptoMail template keys, one per notification template id
    template_verify_email: str = "verify-email"
    template_reset_password: str = "reset-password"
    template_password_changed: str = "password-changed"
    template_login_alert: str = "login-alert"
    template_welcome: str = "welcome"

    def template_key(self, template_id: str) -> str:
        return getattr(self, f"template_{template_id}", template_id)


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "My App"
    app_url: str = "http://localhost:3000"

    # Auth behaviour
    require_email_verification: bool = False
    alert_on_new_login: bool = False

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    jwt: Optional[JWTSettings] = None
    lockout: Optional[LockoutSettings] = None
    mfa: Optional[MfaSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.lockout is None:
            self.lockout = LockoutSettings()
        if self.mfa is None:
            self.mfa = MfaSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()

        if not self.mfa.mfa_issuer_name:
            self.mfa.mfa_issuer_name = self.app_name

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
