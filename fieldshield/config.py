from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    service_name: str = "fieldshield"
    shield_debug: bool = False
    metrics_enabled: bool = True
    otel_enabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()


@dataclass(frozen=True, slots=True)
class ShieldOptions:
    """Immutable options fixed when a shield is built.

    ``debug`` surfaces unexpected predicate failures with their own message
    instead of the generic denial message.
    """

    debug: bool = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ShieldOptions:
        resolved = settings or get_settings()
        return cls(debug=resolved.shield_debug)
