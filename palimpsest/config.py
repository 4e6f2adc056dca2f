import os
import re
from enum import StrEnum
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early so env vars are available for YAML interpolation
_env_file = Path(__file__).parent.parent / ".env"
load_dotenv(_env_file)

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    """Path of the app.yaml file, overridable with PALIMPSEST_CONFIG."""
    override = os.environ.get("PALIMPSEST_CONFIG")
    if override:
        return Path(override)
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse app.yaml with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"app.yaml not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class RollbackDriftPolicy(StrEnum):
    """What a rollback does when later edits were layered on the target change."""

    OVERWRITE = "overwrite"
    REJECT = "reject"


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./palimpsest.db"
    pool_size: int = 5
    pool_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False


class ValidatorConfig(BaseModel):
    """Content validator service configuration."""

    url: str = "http://localhost:8090/validate"
    api_key: str | None = None
    timeout_seconds: float = 120.0


class LedgerConfig(BaseModel):
    """Revision ledger behaviour."""

    rollback_drift: RollbackDriftPolicy = RollbackDriftPolicy.OVERWRITE
    stale_retries: int = 2
    suggestion_cooldown_minutes: int = 0


class LogfireConfig(BaseModel):
    """Pydantic Logfire observability configuration."""

    enabled: bool = False
    service_name: str = "palimpsest"
    environment: str | None = None
    console: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    debug: bool = False
    secret_key: str

    # Sections (loaded from app.yaml)
    db: DatabaseConfig = DatabaseConfig()
    validator: ValidatorConfig = ValidatorConfig()
    ledger: LedgerConfig = LedgerConfig()
    logfire: LogfireConfig = LogfireConfig()


_SECTIONS: dict[str, type[BaseModel]] = {
    "db": DatabaseConfig,
    "validator": ValidatorConfig,
    "ledger": LedgerConfig,
    "logfire": LogfireConfig,
}


@lru_cache
def get_settings() -> Settings:
    """Load settings from .env and app.yaml."""
    # First create base settings from .env
    base_settings = Settings()

    # Load app.yaml config
    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    # Merge YAML config with settings
    updates = {
        key: model(**app_config[key])
        for key, model in _SECTIONS.items()
        if key in app_config
    }

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings
