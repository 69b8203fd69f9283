"""
Mission configuration.

Settings are owned by whoever triggers a mission (CLI, environment, a
settings screen); missions only consume a validated MissionConfig.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

STRICT_MIN_SCORE = 75
QUALIFIED_SCORE = 75

# Providers that need an API key to search
CREDENTIAL_PROVIDERS = {"google_places"}


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


@dataclass
class MissionConfig:
    """Validated settings for running missions."""

    provider: str = "google_places"
    places_api_key: Optional[str] = None
    source_file: Optional[Path] = None
    strict_scoring: bool = False
    max_leads: int = 10
    enrich_limit: int = 15
    enrich_workers: int = 5
    search_radius: int = 5000
    audit_timeout: float = 8.0
    body_timeout: float = 5.0
    database_path: Path = field(default_factory=lambda: Path("data") / "leadfinder.db")

    @property
    def min_score(self) -> int:
        """Save threshold: strict mode keeps only qualified leads."""
        return STRICT_MIN_SCORE if self.strict_scoring else 0

    @classmethod
    def from_env(cls, **overrides) -> "MissionConfig":
        """Build a config from environment variables (load .env first)."""
        values = {
            "provider": os.getenv("LEADFINDER_PROVIDER", "google_places"),
            "places_api_key": os.getenv("GOOGLE_PLACES_API_KEY") or None,
            "strict_scoring": _env_bool("LEADFINDER_STRICT_SCORING"),
            "max_leads": _env_int("LEADFINDER_MAX_LEADS", 10),
        }
        db = os.getenv("LEADFINDER_DB")
        if db:
            values["database_path"] = Path(db)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> "MissionConfig":
        """Raise ConfigurationError if the config cannot run a mission."""
        if self.provider in CREDENTIAL_PROVIDERS:
            key = (self.places_api_key or "").strip()
            if len(key) < 10:
                raise ConfigurationError(
                    "Invalid or missing Google Places API key. "
                    "Set GOOGLE_PLACES_API_KEY or pass --api-key."
                )
        elif self.provider == "json_file":
            if self.source_file is None:
                raise ConfigurationError("json_file provider requires a source file")
        else:
            raise ConfigurationError(f"Unknown business source provider: {self.provider}")

        if self.max_leads < 1:
            raise ConfigurationError("max_leads must be at least 1")
        if self.enrich_workers < 1:
            raise ConfigurationError("enrich_workers must be at least 1")
        return self
