"""
Hierarchical configuration loader for goodnight_journal.

Provides convention-based config file discovery, env var interpolation,
and hierarchical merge with "project wins" semantics.

Usage:
    from goodnight_journal.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GOODNIGHT_JOURNAL_CONFIG"
PROJECT_DIR_NAME = ".goodnight_journal"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * Literal ``${`` with no closing ``}`` is left untouched.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


def _load_yaml(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


# ---------------------------------------------------------------------------
# 2. Convention-based file discovery
# ---------------------------------------------------------------------------


def _candidate_paths() -> list[Path]:
    candidates: list[Path] = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())
    candidates.append(Path.cwd() / PROJECT_DIR_NAME / "config.yml")
    candidates.append(
        Path.home() / ".config" / "goodnight_journal" / "config.yml"
    )
    return candidates


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``GOODNIGHT_JOURNAL_CONFIG`` env var (explicit single path)
        2. ``.goodnight_journal/config.yml`` in CWD (project-level)
        3. ``~/.config/goodnight_journal/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    return [p for p in _candidate_paths() if p.exists()]


# ---------------------------------------------------------------------------
# 3. Config bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# goodnight-journal configuration
#
# Values may reference environment variables: ${VAR} or ${VAR:-default}.
# Most settings can also be set directly via GOODNIGHT_JOURNAL_* env vars,
# e.g. GOODNIGHT_JOURNAL_PROJECT_ID, GOODNIGHT_JOURNAL_USER_ID,
# GOODNIGHT_JOURNAL_ID_TOKEN.
#
# store:
#   data_dir: ~/.local/share/goodnight_journal
#   database: journal.sqlite3
#   settings_file: settings.json
#
# remote:
#   project_id: my-firebase-project
#   database: (default)
#   base_url: https://firestore.googleapis.com/v1
#   connect_timeout: 10
#   read_timeout: 30
#
# auth:
#   user_id: ${FIREBASE_UID}
#   id_token: ${FIREBASE_ID_TOKEN}
#
# sync:
#   autosave_delay: 1.0
#   probe_url: https://firestore.googleapis.com/
#   probe_interval: 30
#   timezone: Europe/Oslo
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the config file that is (or would be) in effect.

    The highest-precedence existing file, else the project-level default
    ``CWD / .goodnight_journal / config.yml``.  Does not create anything.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_DIR_NAME / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Ensure a config file exists, writing a commented starter if needed.

    Args:
        target: Explicit path to create.  If ``None``, uses
            ``resolve_config_path()``.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are loaded from lowest precedence to highest; each file's
    top-level sections **replace** (not deep-merge) earlier ones.  Env var
    interpolation is applied after the merge.

    Returns an empty dict when no config files exist (zero-config).

    Raises:
        yaml.YAMLError: A config file is not valid YAML.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml(path)
        except yaml.YAMLError:
            logger.error("Failed to parse config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
