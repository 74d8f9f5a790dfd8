import re
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# (default, min, max) for every Argon2 cost knob
MEMORY_COST_BOUNDS = (19_456, 1024, 1 << 22)
TIME_COST_BOUNDS = (2, 1, 10)
PARALLELISM_BOUNDS = (1, 1, 8)
SALT_LENGTH_BOUNDS = (16, 8, 64)

_LEADING_INT = re.compile(r"[+-]?\d+")


def clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


def parse_cost(value: object, bounds: tuple[int, int, int]) -> int:
    """
    Lenient integer parse: numbers are truncated, strings are read up to the
    first non-digit, anything else falls back to the default. The result is
    always clamped, never rejected.
    """
    default, low, high = bounds
    if isinstance(value, bool):
        return clamp(default, low, high)
    if isinstance(value, (int, float)):
        try:
            return clamp(int(value), low, high)
        except (OverflowError, ValueError):
            return clamp(default, low, high)
    if isinstance(value, str):
        match = _LEADING_INT.match(value.strip())
        if match:
            return clamp(int(match.group()), low, high)
    return clamp(default, low, high)


class Settings(BaseSettings):
    # App
    log_level: str = "INFO"

    # Password hashing
    password_hash_memory_cost: int = MEMORY_COST_BOUNDS[0]
    password_hash_time_cost: int = TIME_COST_BOUNDS[0]
    password_hash_parallelism: int = PARALLELISM_BOUNDS[0]
    password_hash_salt_length: int = SALT_LENGTH_BOUNDS[0]
    password_hash_force_fallback: bool = False

    # Two-factor
    two_factor_issuer: str = "QuantumJUD"
    two_factor_qr_base_url: str = "https://quickchart.io/qr"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("password_hash_memory_cost", mode="before")
    @classmethod
    def _clamp_memory_cost(cls, v: object) -> int:
        return parse_cost(v, MEMORY_COST_BOUNDS)

    @field_validator("password_hash_time_cost", mode="before")
    @classmethod
    def _clamp_time_cost(cls, v: object) -> int:
        return parse_cost(v, TIME_COST_BOUNDS)

    @field_validator("password_hash_parallelism", mode="before")
    @classmethod
    def _clamp_parallelism(cls, v: object) -> int:
        return parse_cost(v, PARALLELISM_BOUNDS)

    @field_validator("password_hash_salt_length", mode="before")
    @classmethod
    def _clamp_salt_length(cls, v: object) -> int:
        return parse_cost(v, SALT_LENGTH_BOUNDS)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
