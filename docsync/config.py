"""
Centralized configuration loader.

Non-sensitive defaults come from docsync.toml (optional). Every setting can be
overridden from the environment as EXECUTESYNC_<NAME> (a .env file in the
working directory is loaded first), and finally by explicit overrides such as
command-line flags.
"""

import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from docsync.exceptions import ConfigError

ENV_PREFIX = "EXECUTESYNC_"

_DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "docsync.toml"

_config: Optional[dict[str, Any]] = None


def config_path() -> Path:
    """Location of the TOML settings file."""
    return Path(os.environ.get("DOCSYNC_CONFIG_PATH", _DEFAULT_CONFIG_PATH))


def load_config(path: Optional[Path] = None) -> dict[str, Any]:
    """Load (and cache) the TOML settings file. A missing file is an empty config."""
    global _config
    if path is None and _config is not None:
        return _config

    path = path or config_path()
    if path.exists():
        with open(path, "rb") as f:
            try:
                loaded = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid configuration file {path}: {e}") from e
    else:
        loaded = {}

    _config = loaded
    return loaded


def reset_config() -> None:
    """Drop the cached TOML settings."""
    global _config
    _config = None


def get(*keys: str, default: Any = None) -> Any:
    """Traverse nested TOML config by keys.

    Example: get("sync", "chunk_size") -> 10000
    Returns default when any key is missing.
    """
    current: Any = load_config()
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def require_env(name: str) -> str:
    """Get a required environment variable. Raises ConfigError if missing or empty."""
    value = os.environ.get(name)
    if not value:
        raise ConfigError(
            f"Required environment variable '{name}' is not set. "
            f"Add it to your .env file."
        )
    return value


def get_env(name: str) -> str | None:
    """Get an optional environment variable (returns None if not set)."""
    return os.environ.get(name)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"{name} must be a boolean, got '{raw}'")


def _coerce(name: str, raw: Any, target: type) -> Any:
    if raw is None:
        return None
    if target is bool:
        return raw if isinstance(raw, bool) else _parse_bool(name, str(raw))
    if target is int:
        if isinstance(raw, bool):
            raise ConfigError(f"{name} must be an integer, got '{raw}'")
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be an integer, got '{raw}'") from e
    if target is float:
        try:
            return float(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be a number, got '{raw}'") from e
    return str(raw)


@dataclass
class SyncSettings:
    """Resolved settings for one process."""

    execute_url: str = ""
    api_key_id: str = ""
    api_key_secret: str = ""
    max_documents: int = 10000
    database_type: str = ""
    database_dsn: str = ""
    state_dir: str = "."
    wait: int = 600
    chunk_size: int = 10000
    include_calcs: bool = False
    log_level: str = "info"
    log_file: Optional[str] = None
    force: bool = False
    prune_every: int = 0
    timeout: float = 300.0

    REQUIRED = ("execute_url", "api_key_id", "api_key_secret", "database_type", "database_dsn")
    SECRETS = ("api_key_secret", "database_dsn")

    # Environment names that differ from the upper-cased field name
    ENV_NAMES = {
        "api_key_id": "EXECUTE_APIKEY_ID",
        "api_key_secret": "EXECUTE_APIKEY_SECRET",
    }

    @classmethod
    def env_name(cls, field_name: str) -> str:
        """Environment variable holding a setting."""
        return ENV_PREFIX + cls.ENV_NAMES.get(field_name, field_name.upper())

    @classmethod
    def resolve(
        cls,
        overrides: Optional[dict[str, Any]] = None,
        env_file: Optional[Path] = None,
        validate: bool = True,
    ) -> "SyncSettings":
        """Merge defaults, TOML [sync] table, environment and overrides.

        Args:
            overrides: Explicit values (e.g. CLI flags); None values are ignored
            env_file: Optional .env file to load (default: ./.env when present)
            validate: Raise ConfigError when required settings are missing

        Returns:
            Resolved SyncSettings
        """
        env_path = env_file or Path(".env")
        if env_path.exists():
            load_dotenv(env_path)

        settings = cls()
        toml_section = get("sync", default={}) or {}
        overrides = overrides or {}
        types = {f.name: type(getattr(settings, f.name)) for f in fields(cls)}
        types["log_file"] = str

        values: dict[str, Any] = {}
        for f in fields(cls):
            raw: Any = None
            if f.name in toml_section:
                raw = toml_section[f.name]
            env_value = os.environ.get(cls.env_name(f.name))
            if env_value is not None:
                raw = env_value
            if overrides.get(f.name) is not None:
                raw = overrides[f.name]
            if raw is not None:
                values[f.name] = _coerce(cls.env_name(f.name), raw, types[f.name])

        settings = replace(settings, **values)
        settings.database_type = settings.database_type.upper()

        # SQLite defaults to a database file in the state directory
        if settings.database_type == "SQLITE" and not settings.database_dsn:
            settings.database_dsn = str(Path(settings.state_dir) / "execute.sqlite")

        if validate:
            settings.validate()
        return settings

    def validate(self) -> None:
        """Check required settings and value ranges."""
        missing = [self.env_name(name) for name in self.REQUIRED if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if self.chunk_size < 1:
            raise ConfigError(f"{self.env_name('chunk_size')} must be at least 1")
        if self.max_documents < 1:
            raise ConfigError(f"{self.env_name('max_documents')} must be at least 1")
        if self.wait < 0:
            raise ConfigError(f"{self.env_name('wait')} cannot be negative")

    def redacted(self) -> dict[str, Any]:
        """Settings as a dict with secrets masked."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in self.SECRETS and value:
                value = "***REDACTED***"
            result[f.name] = value
        return result
