"""Layered configuration for goodnight_journal.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GOODNIGHT_JOURNAL_DATA_DIR: Directory for the local database and settings
    GOODNIGHT_JOURNAL_PROJECT_ID: Firebase / Google Cloud project id
    GOODNIGHT_JOURNAL_DATABASE: Firestore database id (default: "(default)")
    GOODNIGHT_JOURNAL_BASE_URL: Firestore REST root (emulator in development)
    GOODNIGHT_JOURNAL_INSECURE: Skip SSL verification (default: false)
    GOODNIGHT_JOURNAL_USER_ID: Signed-in user id for headless runs
    GOODNIGHT_JOURNAL_ID_TOKEN: Bearer token for Firestore requests
    GOODNIGHT_JOURNAL_AUTOSAVE_DELAY: Autosave debounce in seconds
    GOODNIGHT_JOURNAL_TIMEZONE: IANA zone that defines the calendar day
"""

import logging
import os
from typing import Any
from urllib.parse import urlparse

from dotenv import find_dotenv, load_dotenv

from .config_loader import load_hierarchical_config
from .config_schema import JournalConfig, build_config

logger = logging.getLogger(__name__)

ENV_PREFIX = "GOODNIGHT_JOURNAL_"

# Flat override / env key -> (section, field)
FIELD_MAP: dict[str, tuple[str, str]] = {
    "data_dir": ("store", "data_dir"),
    "project_id": ("remote", "project_id"),
    "database": ("remote", "database"),
    "base_url": ("remote", "base_url"),
    "insecure": ("remote", "insecure"),
    "user_id": ("auth", "user_id"),
    "id_token": ("auth", "id_token"),
    "autosave_delay": ("sync", "autosave_delay"),
    "timezone": ("sync", "timezone"),
}


def _env_values() -> dict[str, str]:
    values = {}
    for key in FIELD_MAP:
        raw = os.getenv(ENV_PREFIX + key.upper())
        if raw is not None and raw.strip() != "":
            values[key] = raw.strip()
    return values


def _apply(raw: dict[str, Any], flat: dict[str, Any]) -> dict[str, Any]:
    """Layer flat ``key -> value`` settings onto a sectioned raw dict."""
    layered = {
        section: dict(values) if isinstance(values, dict) else values
        for section, values in raw.items()
    }
    for key, value in flat.items():
        if value is None or key not in FIELD_MAP:
            continue
        section, field = FIELD_MAP[key]
        target = layered.get(section)
        if not isinstance(target, dict):
            target = layered[section] = {}
        target[field] = value
    return layered


def load_config(
    overrides: dict[str, Any] | None = None,
    *,
    raw: dict[str, Any] | None = None,
    dotenv: bool = True,
) -> JournalConfig:
    """Load configuration with unified precedence.

    Args:
        overrides: Flat CLI values keyed as in ``FIELD_MAP``; ``None``
            values are ignored.
        raw: Sectioned YAML data.  Discovered with
            ``load_hierarchical_config()`` when omitted.
        dotenv: Load a ``.env`` file first so its values are visible
            as environment variables and to YAML interpolation.

    Returns:
        Validated ``JournalConfig``.

    Raises:
        ValueError: A value from any source fails validation.
    """
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))
    if raw is None:
        raw = load_hierarchical_config()

    layered = _apply(raw, _env_values())
    layered = _apply(layered, overrides or {})
    config = build_config(layered)

    if config.remote.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )
    return config


def validate_remote_config(config: JournalConfig) -> None:
    """Check the settings needed to talk to Firestore.

    Raises:
        ValueError: Project id missing or base URL malformed.
    """
    if not config.remote.project_id:
        raise ValueError(
            "Firestore project id not found. Set GOODNIGHT_JOURNAL_PROJECT_ID, "
            "pass --project-id, or add 'remote.project_id' to config.yml."
        )

    base_url = config.remote.base_url.strip()
    if not base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid Firestore URL '{base_url}': must start with http:// or https://"
        )
    if not urlparse(base_url).hostname:
        raise ValueError(
            f"Invalid Firestore URL '{base_url}': URL must include a hostname"
        )
