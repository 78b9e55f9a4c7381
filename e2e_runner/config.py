"""
Runner configuration
Everything is read from the environment (optionally seeded from a .env file).
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from e2e_runner.errors import ConfigError

TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in TRUTHY


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _env_float(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True)
class E2ETestConfig:
    """
    Settings for one end-to-end run.
    Frozen: consumers take their own copy with dataclasses.replace().
    """

    verification_admin_api_server: str
    verification_api_server: str
    verification_admin_api_key: str = ""
    verification_api_server_key: str = ""
    do_revise: bool = False
    request_timeout: float = 30.0


@dataclass
class DatabaseConfig:
    url: str = ""

    @classmethod
    def from_env(cls):
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)

        db_user = os.environ.get("DB_USER", "e2e_runner")
        db_pass = os.environ.get("DB_PASS", "password")
        db_host = os.environ.get("DB_HOST", "verification-db")
        db_port = _env_int("DB_PORT", 5432)
        db_name = os.environ.get("DB_NAME", "verification_db")
        return cls(url=f"postgresql://{db_user}:{db_pass}@{db_host}:{db_port}/{db_name}")


@dataclass
class E2ERunnerConfig:
    database: DatabaseConfig
    test_config: E2ETestConfig
    port: int = 8080
    log_debug: bool = False
    dev_mode: bool = False
    api_key_database_hmac: str = "dev-secret-change-me"
    build_id: str = "local"
    build_tag: str = "dev"
    metrics_enabled: bool = True


def load_config(dotenv=True):
    """Build the runner config from the environment; raises ConfigError."""
    if dotenv:
        load_dotenv()

    admin_api = os.environ.get("E2E_ADMIN_API_SERVER", "").rstrip("/")
    api_server = os.environ.get("E2E_API_SERVER", "").rstrip("/")
    missing = [
        name
        for name, value in (("E2E_ADMIN_API_SERVER", admin_api), ("E2E_API_SERVER", api_server))
        if not value
    ]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    port = _env_int("PORT", 8080)
    if not 0 < port < 65536:
        raise ConfigError(f"PORT out of range: {port}")

    test_config = E2ETestConfig(
        verification_admin_api_server=admin_api,
        verification_api_server=api_server,
        request_timeout=_env_float("E2E_REQUEST_TIMEOUT", 30.0),
    )

    return E2ERunnerConfig(
        database=DatabaseConfig.from_env(),
        test_config=test_config,
        port=port,
        log_debug=_env_bool("LOG_DEBUG"),
        dev_mode=_env_bool("DEV_MODE"),
        api_key_database_hmac=os.environ.get("API_KEY_DATABASE_HMAC", "dev-secret-change-me"),
        build_id=os.environ.get("BUILD_ID", "local"),
        build_tag=os.environ.get("BUILD_TAG", "dev"),
        metrics_enabled=_env_bool("METRICS_ENABLED", default=True),
    )
