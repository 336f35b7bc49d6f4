from __future__ import annotations

import os
from dataclasses import dataclass, field

from sponsorguard.core.validation import ConfigurationError


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number", details={"value": raw}) from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive", details={"value": raw})
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer", details={"value": raw}) from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive", details={"value": raw})
    return value


@dataclass(frozen=True, slots=True)
class RiskWeights:
    """Points added to the global risk score per non-compliant input."""

    serious_breach: int = 40
    breach: int = 15
    red_flag: int = 10

    def __post_init__(self) -> None:
        if min(self.serious_breach, self.breach, self.red_flag) < 0:
            raise ConfigurationError("risk weights must be non-negative")

    @classmethod
    def parse(cls, raw: str | None) -> "RiskWeights":
        if raw is None or not raw.strip():
            return cls()
        parts = [part.strip() for part in raw.split(",")]
        if len(parts) != 3:
            raise ConfigurationError(
                "SPONSORGUARD_RISK_WEIGHTS must be 'serious,breach,red_flag'",
                details={"value": raw},
            )
        try:
            serious, breach, red_flag = (int(part) for part in parts)
        except ValueError as exc:
            raise ConfigurationError("risk weights must be integers", details={"value": raw}) from exc
        return cls(serious_breach=serious, breach=breach, red_flag=red_flag)


@dataclass(frozen=True, slots=True)
class Settings:
    ai_api_key: str | None = None
    ai_api_base: str = "https://api.openai.com/v1"
    ai_model: str = "gpt-4-turbo"
    ai_timeout: float = 12.0
    cache_ttl: float = 24 * 60 * 60
    cache_max_entries: int = 100
    risk_weights: RiskWeights = field(default_factory=RiskWeights)
    batch_concurrency: int = 4
    cors_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = tuple(origin.strip() for origin in origins_env.split(",") if origin.strip())

        log_level = (os.getenv("SPONSORGUARD_LOG_LEVEL") or "INFO").upper()
        if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ConfigurationError("SPONSORGUARD_LOG_LEVEL is not a valid level", details={"value": log_level})

        defaults = cls()
        return cls(
            ai_api_key=os.getenv("SPONSORGUARD_AI_API_KEY") or os.getenv("OPENAI_API_KEY") or None,
            ai_api_base=os.getenv("SPONSORGUARD_AI_API_BASE") or defaults.ai_api_base,
            ai_model=os.getenv("SPONSORGUARD_AI_MODEL") or defaults.ai_model,
            ai_timeout=_float_env("SPONSORGUARD_AI_TIMEOUT", defaults.ai_timeout),
            cache_ttl=_float_env("SPONSORGUARD_CACHE_TTL", defaults.cache_ttl),
            cache_max_entries=_int_env("SPONSORGUARD_CACHE_MAX_ENTRIES", defaults.cache_max_entries),
            risk_weights=RiskWeights.parse(os.getenv("SPONSORGUARD_RISK_WEIGHTS")),
            batch_concurrency=_int_env("SPONSORGUARD_BATCH_CONCURRENCY", defaults.batch_concurrency),
            cors_origins=origins or defaults.cors_origins,
            log_level=log_level,
            log_json=(os.getenv("SPONSORGUARD_LOG_JSON") or "").lower() in {"1", "true", "yes"},
        )
