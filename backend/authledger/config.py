"""Application configuration."""
from collections import Counter
from functools import lru_cache
import math

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def check_secret_strength(value: str, name: str = "secret key") -> str:
    """Fail closed if a signing secret is weak or placeholder quality."""
    if not value:
        raise ValueError(f"{name} must be set.")

    if len(value) < 32:
        raise ValueError(f"{name} must be at least 32 characters.")

    weak_values = {"changeme", "changeme-in-production", "secret", "password", "test"}
    lowered = value.lower()
    if lowered in weak_values or "changeme" in lowered:
        raise ValueError(f"{name} must not be a placeholder value.")

    counts = Counter(value)
    entropy_per_char = -sum((count / len(value)) * math.log2(count / len(value)) for count in counts.values())
    estimated_entropy_bits = entropy_per_char * len(value)
    if estimated_entropy_bits < 100:
        raise ValueError(f"{name} entropy is too low; use a cryptographically random value.")

    return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    app_name: str = "AuthLedger"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = True

    # Database
    database_url: str = "sqlite:///./data/authledger.db"

    # Tokens
    token_issuer: str = "authledger"
    algorithm: str = "HS256"
    access_secret_key: str
    refresh_secret_key: str
    recovery_secret_key: str
    access_token_expire_minutes: int = 15
    refresh_token_expire_minutes: int = 12 * 60
    recovery_token_expire_minutes: int = 24 * 60

    # Recovery email
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "noreply@authledger.local"
    recovery_url_template: str = "http://localhost:5173/recover?token={token}"

    # Bootstrap administrator, created at startup when all three are set
    admin_login: str | None = None
    admin_email: str | None = None
    admin_password: str | None = None

    @field_validator("access_secret_key", "refresh_secret_key", "recovery_secret_key")
    @classmethod
    def validate_secret_key(cls, value: str, info: ValidationInfo) -> str:
        """Fail closed if any signing secret is weak or placeholder quality."""
        return check_secret_strength(value, info.field_name.upper())

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        secrets = {self.access_secret_key, self.refresh_secret_key, self.recovery_secret_key}
        if len(secrets) != 3:
            raise ValueError("ACCESS_SECRET_KEY, REFRESH_SECRET_KEY and RECOVERY_SECRET_KEY must differ.")
        return self

    @property
    def bootstrap_admin_enabled(self) -> bool:
        return bool(self.admin_login and self.admin_email and self.admin_password)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
