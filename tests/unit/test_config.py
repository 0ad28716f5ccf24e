"""
Tests for settings resolution.
"""

import os

import pytest

from docsync import config
from docsync.config import SyncSettings
from docsync.exceptions import ConfigError

REQUIRED_ENV = {
    "EXECUTESYNC_EXECUTE_URL": "https://execute.example.com",
    "EXECUTESYNC_EXECUTE_APIKEY_ID": "key-id",
    "EXECUTESYNC_EXECUTE_APIKEY_SECRET": "key-secret",
    "EXECUTESYNC_DATABASE_TYPE": "sqlite",
}


@pytest.fixture
def required_env(clean_env):
    for name, value in REQUIRED_ENV.items():
        clean_env.setenv(name, value)
    return clean_env


def test_env_names():
    assert SyncSettings.env_name("api_key_id") == "EXECUTESYNC_EXECUTE_APIKEY_ID"
    assert SyncSettings.env_name("chunk_size") == "EXECUTESYNC_CHUNK_SIZE"


def test_defaults(required_env):
    settings = SyncSettings.resolve()

    assert settings.max_documents == 10000
    assert settings.chunk_size == 10000
    assert settings.wait == 600
    assert settings.include_calcs is False
    assert settings.log_level == "info"
    assert settings.prune_every == 0


def test_sqlite_dsn_defaults_to_state_dir(required_env, tmp_path):
    required_env.setenv("EXECUTESYNC_STATE_DIR", str(tmp_path / "state"))
    settings = SyncSettings.resolve()

    assert settings.database_type == "SQLITE"
    assert settings.database_dsn == str(tmp_path / "state" / "execute.sqlite")


def test_missing_required_lists_every_variable(clean_env):
    with pytest.raises(ConfigError) as exc_info:
        SyncSettings.resolve()

    message = str(exc_info.value)
    for name in REQUIRED_ENV:
        assert name in message
    assert "EXECUTESYNC_DATABASE_DSN" in message


def test_resolve_without_validation(clean_env):
    settings = SyncSettings.resolve(validate=False)
    assert settings.execute_url == ""


def test_precedence_toml_env_override(required_env, tmp_path):
    toml_file = tmp_path / "docsync.toml"
    toml_file.write_text("[sync]\nchunk_size = 500\nwait = 60\nmax_documents = 250\n")
    required_env.setenv("DOCSYNC_CONFIG_PATH", str(toml_file))
    required_env.setenv("EXECUTESYNC_WAIT", "30")
    config.reset_config()

    settings = SyncSettings.resolve(overrides={"max_documents": 100, "chunk_size": None})

    assert settings.chunk_size == 500
    assert settings.wait == 30
    assert settings.max_documents == 100


def test_env_file_loaded(clean_env, tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text(
        "\n".join(f"{name}={value}" for name, value in REQUIRED_ENV.items())
        + "\nEXECUTESYNC_INCLUDE_CALCS=true\n"
    )

    try:
        settings = SyncSettings.resolve(env_file=env_file)
    finally:
        # load_dotenv writes straight to os.environ
        for name in [*REQUIRED_ENV, "EXECUTESYNC_INCLUDE_CALCS"]:
            os.environ.pop(name, None)

    assert settings.api_key_secret == "key-secret"
    assert settings.include_calcs is True


def test_invalid_integer(required_env):
    required_env.setenv("EXECUTESYNC_CHUNK_SIZE", "lots")
    with pytest.raises(ConfigError, match="EXECUTESYNC_CHUNK_SIZE must be an integer"):
        SyncSettings.resolve()


def test_invalid_boolean(required_env):
    required_env.setenv("EXECUTESYNC_INCLUDE_CALCS", "maybe")
    with pytest.raises(ConfigError, match="must be a boolean"):
        SyncSettings.resolve()


@pytest.mark.parametrize(
    "name,value",
    [("EXECUTESYNC_CHUNK_SIZE", "0"), ("EXECUTESYNC_MAX_DOCUMENTS", "0"), ("EXECUTESYNC_WAIT", "-1")],
)
def test_out_of_range(required_env, name, value):
    required_env.setenv(name, value)
    with pytest.raises(ConfigError):
        SyncSettings.resolve()


def test_invalid_toml(clean_env, tmp_path):
    toml_file = tmp_path / "broken.toml"
    toml_file.write_text("[sync\n")
    clean_env.setenv("DOCSYNC_CONFIG_PATH", str(toml_file))
    config.reset_config()

    with pytest.raises(ConfigError, match="Invalid configuration file"):
        SyncSettings.resolve(validate=False)


def test_redacted_masks_secrets(required_env):
    required_env.setenv("EXECUTESYNC_DATABASE_DSN", "/data/execute.sqlite")
    redacted = SyncSettings.resolve().redacted()

    assert redacted["api_key_secret"] == "***REDACTED***"
    assert redacted["database_dsn"] == "***REDACTED***"
    assert redacted["api_key_id"] == "key-id"


def test_get_traverses_nested_keys(clean_env, tmp_path):
    toml_file = tmp_path / "docsync.toml"
    toml_file.write_text("[sync]\nchunk_size = 42\n")
    clean_env.setenv("DOCSYNC_CONFIG_PATH", str(toml_file))
    config.reset_config()

    assert config.get("sync", "chunk_size") == 42
    assert config.get("sync", "missing", default="x") == "x"


def test_require_env(clean_env):
    clean_env.setenv("EXECUTESYNC_EXECUTE_URL", "https://x")
    assert config.require_env("EXECUTESYNC_EXECUTE_URL") == "https://x"
    with pytest.raises(ConfigError):
        config.require_env("EXECUTESYNC_NOT_SET")
