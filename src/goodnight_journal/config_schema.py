"""Configuration schema for goodnight_journal.

Pydantic models for the config file, one frozen section per concern:
local store paths, Firestore connection, identity, sync timing, and
logging.  Every field has a default, so ``JournalConfig()`` (zero-config)
is always valid; a remote project id is only required by commands that
talk to the cloud.

Usage:
    from goodnight_journal.config_schema import JournalConfig, build_config

    raw = load_hierarchical_config()
    config = build_config(raw)
"""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Local persistence paths.

    ``database`` and ``settings_file`` are resolved relative to
    ``data_dir`` unless absolute.
    """

    data_dir: str = Field(
        default="~/.local/share/goodnight_journal",
        description="Directory holding the local database and settings",
    )
    database: str = Field(
        default="journal.sqlite3", description="SQLite entry store file"
    )
    settings_file: str = Field(
        default="settings.json",
        description="Settings file holding the sync cursor",
    )

    model_config = {"frozen": True}

    def _resolve(self, name: str) -> Path:
        path = Path(name).expanduser()
        if path.is_absolute():
            return path
        return Path(self.data_dir).expanduser() / path

    @property
    def database_path(self) -> Path:
        return self._resolve(self.database)

    @property
    def settings_path(self) -> Path:
        return self._resolve(self.settings_file)


class RemoteConfig(BaseModel):
    """Cloud Firestore connection settings."""

    project_id: str | None = Field(
        default=None, description="Google Cloud project id"
    )
    database: str = Field(
        default="(default)", description="Firestore database id"
    )
    base_url: str = Field(
        default="https://firestore.googleapis.com/v1",
        description="Firestore REST root (point at the emulator in dev)",
    )
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=30.0, gt=0)
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )

    model_config = {"frozen": True}


class AuthConfig(BaseModel):
    """Signed-in identity for headless runs.

    Interactive hosts supply their own identity provider; the CLI reads
    a user id and bearer token from here (or the environment).
    """

    user_id: str | None = Field(default=None, description="Firebase uid")
    id_token: str | None = Field(
        default=None, description="Bearer token for Firestore requests"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync and autosave timing."""

    autosave_delay: float = Field(
        default=1.0,
        ge=0,
        description="Seconds of editor quiet before a draft is saved",
    )
    probe_url: str = Field(
        default="https://firestore.googleapis.com/",
        description="URL polled by the reachability probe in watch mode",
    )
    probe_interval: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between reachability probes",
    )
    timezone: str | None = Field(
        default=None,
        description="IANA zone that defines the calendar day (host zone if unset)",
    )

    model_config = {"frozen": True}

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str | None) -> str | None:
        if value:
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(f"Unknown time zone '{value}'") from None
        return value or None

    def tzinfo(self) -> dt.tzinfo | None:
        """Configured zone, or ``None`` for the host zone."""
        return ZoneInfo(self.timezone) if self.timezone else None


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class JournalConfig(BaseModel):
    """Top-level configuration aggregating every section."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> JournalConfig:
    """Construct a ``JournalConfig`` from a merged raw dict.

    Missing sections get defaults.  Unknown top-level keys are ignored.

    Raises:
        pydantic.ValidationError: A present section is malformed.
    """
    if not raw_data:
        return JournalConfig()

    known = {
        key: value
        for key, value in raw_data.items()
        if key in JournalConfig.model_fields and value is not None
    }
    ignored = sorted(set(raw_data) - set(known))
    if ignored:
        logger.debug("Ignoring unknown config sections: %s", ignored)
    return JournalConfig(**known)
