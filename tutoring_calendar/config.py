"""Configuration helpers for the tutoring calendar engine."""
from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


# Firestore rejects batched writes with more than 500 operations.
MAX_BATCH_SIZE = 500

DEFAULT_COLLECTIONS: Dict[str, str] = {
    "shifts": "shifts",
    "availability": "tutor_availabilities",
    "studentRequest": "student_requests",
}


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the calendar engine."""

    environment: str = "local"
    timezone: str = "UTC"

    # Recurrence expansion window
    max_occurrences: int = 52
    horizon_weeks: int = 52

    # Materialization pass
    materialize_interval_seconds: float = 60.0
    batch_size: int = MAX_BATCH_SIZE

    # Storage
    force_file_store: bool = False
    store_dir: Path = field(
        default_factory=lambda: Path(__file__).resolve().parents[1] / "calendar_store"
    )
    collections: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_COLLECTIONS))
    outbox_collection: str = "notification_outbox"
    users_collection: str = "users"

    # Meeting provider (Microsoft Graph). None disables meeting side effects.
    meeting_access_token: Optional[str] = None

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def collection_for(self, entity_type: str) -> str:
        """Return the store collection holding documents of ``entity_type``."""
        try:
            return self.collections[getattr(entity_type, "value", entity_type)]
        except KeyError as exc:
            raise ConfigError(f"No collection configured for entity type '{entity_type}'.") from exc


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got '{raw}'.") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got '{raw}'.") from exc


def load_settings() -> Settings:
    """Load settings from ``TCAL_*`` environment variables.

    Returns:
        Settings with defaults applied for anything unset.

    Raises:
        ConfigError: if a value is malformed or out of range.
    """

    settings = Settings(
        environment=os.getenv("TCAL_ENV", "local"),
        timezone=os.getenv("TCAL_TIMEZONE", "UTC").strip() or "UTC",
        max_occurrences=_int_env("TCAL_MAX_OCCURRENCES", 52),
        horizon_weeks=_int_env("TCAL_HORIZON_WEEKS", 52),
        materialize_interval_seconds=_float_env("TCAL_MATERIALIZE_INTERVAL", 60.0),
        batch_size=_int_env("TCAL_BATCH_SIZE", MAX_BATCH_SIZE),
        force_file_store=os.getenv("TCAL_STORE_FORCE_FILE", "0") == "1",
        outbox_collection=os.getenv("TCAL_OUTBOX_COLLECTION", "notification_outbox"),
        users_collection=os.getenv("TCAL_USERS_COLLECTION", "users"),
        meeting_access_token=os.getenv("TCAL_GRAPH_ACCESS_TOKEN") or None,
    )

    store_dir = os.getenv("TCAL_STORE_DIR", "").strip()
    if store_dir:
        settings.store_dir = Path(store_dir)

    for entity_type, env_suffix in (
        ("shifts", "SHIFTS"),
        ("availability", "AVAILABILITY"),
        ("studentRequest", "STUDENT_REQUESTS"),
    ):
        override = os.getenv(f"TCAL_{env_suffix}_COLLECTION", "").strip()
        if override:
            settings.collections[entity_type] = override

    validate_settings(settings)
    return settings


def validate_settings(settings: Settings) -> None:
    """Raise ConfigError if ``settings`` cannot drive the engine."""

    try:
        settings.tz
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timezone '{settings.timezone}'.") from exc

    if settings.max_occurrences < 1:
        raise ConfigError("TCAL_MAX_OCCURRENCES must be at least 1.")
    if settings.horizon_weeks < 1:
        raise ConfigError("TCAL_HORIZON_WEEKS must be at least 1.")
    if settings.materialize_interval_seconds <= 0:
        raise ConfigError("TCAL_MATERIALIZE_INTERVAL must be positive.")
    if not 1 <= settings.batch_size <= MAX_BATCH_SIZE:
        raise ConfigError(
            f"TCAL_BATCH_SIZE must be between 1 and {MAX_BATCH_SIZE}, "
            f"got {settings.batch_size}."
        )
