from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service settings.

    Notes:
    - Defaults are local and deterministic (SQLite file, bundled registry).
    - Override via ``STAFFDESK_*`` env vars when deploying.
    """

    model_config = SettingsConfigDict(env_prefix="STAFFDESK_", extra="ignore")

    db_url: str | None = None
    registry_path: str | None = None
    log_level: str = "INFO"

    # Memo of role-grants ∪ individual-grants per (role, grants); 0 disables it.
    permission_cache_size: int = 256

    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "staffdesk.db"
        return f"sqlite:///{db_path}"

    def resolved_registry_path(self) -> Path:
        if self.registry_path:
            return Path(self.registry_path)

        return Path(__file__).resolve().parent / "config" / "registry.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
