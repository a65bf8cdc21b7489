import os
from enum import Enum
from typing import Any, Dict, Tuple

from dotenv import dotenv_values
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hypixel_gateway.core.errors import ConfigurationError
from hypixel_gateway.services.hypixel import HypixelEndpoint, MinecraftApiType

ENV_FILES: Tuple[str, ...] = (".env", "../.env")

SERVER_ENDPOINT_PREFIX = "SERVER_ENDPOINT."
HYPIXEL_CACHE_TTL_PREFIX = "HYPIXEL_CACHE_TTL."


class RateLimitStrategy(str, Enum):
    DELAY = "Delay"
    ERROR = "Error"


def _prefixed_values(prefix: str, env_files: Tuple[str, ...] = ENV_FILES) -> Dict[str, str]:
    """
    Collect ``<prefix><NAME>=value`` entries from the .env files and the
    process environment (environment wins), keyed by ``NAME``.
    """
    values: Dict[str, Any] = {}
    for path in env_files:
        if os.path.isfile(path):
            values.update(dotenv_values(path))
    values.update(os.environ)
    return {
        key[len(prefix):]: value
        for key, value in values.items()
        if key.startswith(prefix) and value is not None
    }


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # .env in CWD first, then the parent dir (running from backend/).
        env_file=ENV_FILES,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Required: no defaults, the process refuses to start without them ---
    API_KEY: str
    PORT: int
    BASE_URL: str

    # --- Upstream ---
    MINECRAFT_API_TYPE: MinecraftApiType = MinecraftApiType.PLAYER_DB
    MINECRAFT_CACHE_TTL: int = 900
    HYPIXEL_TIMEOUT: float = 15.0
    # HYPIXEL_CACHE_TTL.<ENDPOINT>=<seconds>
    HYPIXEL_CACHE_TTL: Dict[str, int] = Field(default_factory=dict)

    # --- Routes: SERVER_ENDPOINT.<NAME>=true|false ---
    SERVER_ENDPOINT: Dict[str, bool] = Field(default_factory=dict)

    # --- Rate limiting ---
    RATE_LIMIT_STRATEGY: RateLimitStrategy = RateLimitStrategy.ERROR
    SERVER_PERIOD: int = Field(1, validation_alias="SERVER.PERIOD")
    SERVER_BURST: int = Field(8, validation_alias="SERVER.BURST")

    # --- Observability ---
    LOG_LEVEL: str = "INFO"

    DEFAULT_REDIRECT_URL: str = "https://github.com/kr45732/rs-pixel-backend"

    @model_validator(mode="before")
    @classmethod
    def collect_prefixed_settings(cls, data: Any) -> Any:
        """Dotted per-endpoint keys are open-ended, so they are gathered by prefix."""
        if not isinstance(data, dict):
            return data
        if "SERVER_ENDPOINT" not in data:
            data["SERVER_ENDPOINT"] = _prefixed_values(SERVER_ENDPOINT_PREFIX)
        if "HYPIXEL_CACHE_TTL" not in data:
            data["HYPIXEL_CACHE_TTL"] = _prefixed_values(HYPIXEL_CACHE_TTL_PREFIX)
        return data

    @field_validator("SERVER_PERIOD", "SERVER_BURST")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("SERVER.PERIOD and SERVER.BURST must be positive integers")
        return v

    @field_validator("MINECRAFT_CACHE_TTL")
    @classmethod
    def ttl_must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("MINECRAFT_CACHE_TTL must not be negative")
        return v

    @field_validator("HYPIXEL_CACHE_TTL")
    @classmethod
    def ttls_must_name_known_endpoints(cls, v: Dict[str, int]) -> Dict[str, int]:
        for name, ttl in v.items():
            if name not in HypixelEndpoint.__members__:
                raise ValueError(f"Unable to parse hypixel endpoint from {name}")
            if ttl < 0:
                raise ValueError(f"HYPIXEL_CACHE_TTL.{name} must not be negative")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def log_level_must_be_valid(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}")
        return v.upper()

    def enabled_endpoints(self) -> Dict[str, bool]:
        return dict(self.SERVER_ENDPOINT)


def load_settings(**overrides: Any) -> Settings:
    """Build the settings, turning any validation failure into a ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
