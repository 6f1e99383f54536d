from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file, policy-based leave evaluator,
      emails written to the log instead of being sent).
    - Every field can be overridden with a `CAMPUSHUB_` prefixed env var.
    """

    model_config = SettingsConfigDict(env_prefix="CAMPUSHUB_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"

    # Bootstrap superadmin (created by init_db when missing).
    superadmin_email: str = "superadmin@campushub.local"
    superadmin_name: str = "Super Administrator"
    default_password: str = "password"

    # Leave approval: "policy" runs locally, "http" calls an external model service.
    leave_evaluator: Literal["policy", "http"] = "policy"
    leave_evaluator_url: str | None = None
    http_timeout_seconds: float = 15.0

    # Transactional email API. Without a key, emails are logged only.
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: str | None = None
    email_from: str = "CampusHub <onboarding@resend.dev>"
    email_sandbox_recipient: str | None = None

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value!r}")
        return normalized

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "campushub.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
