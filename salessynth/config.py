"""
Centralized configuration loader for the SalesSynth research core.

Loads settings from YAML files and environment variables, providing
sensible defaults when configuration files are absent.

Provides:
    - ProviderTimeouts: Per-provider HTTP timeouts (seconds)
    - Settings: Global application settings loaded from YAML + env vars
    - get_settings(): Singleton accessor for Settings
    - reset_settings(): Drop the cached Settings (tests, reloads)
    - validate_env(): Startup validation of required environment variables
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from salessynth.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Load .env file (no-op if file does not exist)
# ---------------------------------------------------------------------------
load_dotenv()

# ---------------------------------------------------------------------------
# Project root directory (parent of salessynth/)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)

RESEARCH_SOURCE_NAMES: List[str] = ["google", "diffbot", "apollo", "pdl", "linkedin", "reddit"]


# ===========================================================================
# PROVIDER TIMEOUTS
# ===========================================================================


@dataclass
class ProviderTimeouts:
    """
    Bounded HTTP timeouts per provider, in seconds.

    A timeout is handled like any other adapter failure.
    """

    serpapi: float = 10.0
    diffbot: float = 30.0
    apollo: float = 15.0
    pdl: float = 15.0
    linkedin: float = 10.0
    reddit: float = 10.0
    aviationstack: float = 5.0
    anthropic: float = 30.0

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            try:
                value = float(value)
            except (ValueError, TypeError) as exc:
                raise ConfigurationError(
                    f"Invalid timeout for provider '{f.name}': {value!r}"
                ) from exc
            if value <= 0:
                raise ConfigurationError(
                    f"Timeout for provider '{f.name}' must be positive, got {value}"
                )
            setattr(self, f.name, value)


# ===========================================================================
# GLOBAL SETTINGS
# ===========================================================================


@dataclass
class Settings:
    """
    Global application settings.

    Loaded from ``config/settings.yaml`` when available, falling back to
    sensible defaults. Environment variables override YAML values for
    deployment-specific tuning.
    """

    # Research cycle
    cooldown_hours: float = 12.0
    enabled_sources: List[str] = field(
        default_factory=lambda: list(RESEARCH_SOURCE_NAMES)
    )
    max_news_articles: int = 5
    max_analyzed_articles: int = 3
    batch_size: int = 5
    batch_delay_seconds: float = 5.0

    # Due-client selection
    follow_up_window_days: int = 7
    stale_research_days: int = 14

    # Flight lookup
    flight_cache_ttl_seconds: float = 300.0
    flight_cache_max_entries: int = 1024
    flight_rate_limit_calls: int = 1
    flight_rate_limit_window_seconds: float = 1.0

    # LLM settings
    llm_model: str = "claude-sonnet-4-5"
    llm_max_tokens: int = 800
    llm_temperature: float = 0.7

    # Logging
    log_level: str = "INFO"

    # HTTP
    timeouts: ProviderTimeouts = field(default_factory=ProviderTimeouts)

    def __post_init__(self) -> None:
        """Override tuning values from environment variables if set."""
        env_overrides = {
            "RESEARCH_COOLDOWN_HOURS": ("cooldown_hours", float),
            "RESEARCH_BATCH_SIZE": ("batch_size", int),
            "FLIGHT_CACHE_TTL_SECONDS": ("flight_cache_ttl_seconds", float),
            "FLIGHT_CACHE_MAX_ENTRIES": ("flight_cache_max_entries", int),
            "FLIGHT_RATE_LIMIT_PER_SECOND": ("flight_rate_limit_calls", int),
            "LOG_LEVEL": ("log_level", str),
        }
        for env_key, (attr_name, cast_fn) in env_overrides.items():
            env_val = os.environ.get(env_key)
            if env_val is not None:
                try:
                    setattr(self, attr_name, cast_fn(env_val))
                except (ValueError, TypeError) as exc:
                    raise ConfigurationError(
                        f"Invalid value for env var {env_key}='{env_val}': {exc}"
                    ) from exc

        unknown = [s for s in self.enabled_sources if s not in RESEARCH_SOURCE_NAMES]
        if unknown:
            raise ConfigurationError(
                f"Unknown research sources {unknown}. "
                f"Valid sources: {RESEARCH_SOURCE_NAMES}"
            )
        if self.cooldown_hours < 0:
            raise ConfigurationError("cooldown_hours cannot be negative")
        if self.batch_size <= 0:
            raise ConfigurationError("batch_size must be positive")
        if self.flight_cache_ttl_seconds <= 0:
            raise ConfigurationError("flight_cache_ttl_seconds must be positive")
        if self.flight_cache_max_entries <= 0:
            raise ConfigurationError("flight_cache_max_entries must be positive")
        if self.flight_rate_limit_calls <= 0:
            raise ConfigurationError("flight_rate_limit_calls must be positive")

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a YAML file.

        If the file does not exist, returns an instance with all defaults.
        Environment variables override YAML values for specific keys.

        Args:
            path: Path to the YAML file. Defaults to
                ``<PROJECT_ROOT>/config/settings.yaml``.

        Returns:
            Populated Settings instance.

        Raises:
            ConfigurationError: If the YAML file exists but cannot be parsed
                or contains invalid values.
        """
        path = path or PROJECT_ROOT / "config" / "settings.yaml"

        data: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    f"Failed to parse settings YAML at {path}: {exc}"
                ) from exc

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings YAML at {path} must be a mapping, got {type(data).__name__}"
            )

        # -----------------------------------------------------------------
        # Nested sections
        # -----------------------------------------------------------------
        research = data.get("research", {}) or {}
        flights = data.get("flights", {}) or {}
        llm = data.get("llm", {}) or {}

        timeout_data = data.get("timeouts", {}) or {}
        unknown_timeouts = [
            k for k in timeout_data if k not in ProviderTimeouts.__dataclass_fields__
        ]
        if unknown_timeouts:
            raise ConfigurationError(
                f"Unknown providers in timeouts section: {unknown_timeouts}"
            )
        timeouts = ProviderTimeouts(**timeout_data)

        defaults = cls.__dataclass_fields__
        kwargs: Dict[str, Any] = {
            "cooldown_hours": research.get("cooldown_hours", defaults["cooldown_hours"].default),
            "max_news_articles": research.get("max_news_articles", defaults["max_news_articles"].default),
            "max_analyzed_articles": research.get(
                "max_analyzed_articles", defaults["max_analyzed_articles"].default
            ),
            "batch_size": research.get("batch_size", defaults["batch_size"].default),
            "batch_delay_seconds": research.get(
                "batch_delay_seconds", defaults["batch_delay_seconds"].default
            ),
            "follow_up_window_days": research.get(
                "follow_up_window_days", defaults["follow_up_window_days"].default
            ),
            "stale_research_days": research.get(
                "stale_research_days", defaults["stale_research_days"].default
            ),
            "flight_cache_ttl_seconds": flights.get(
                "cache_ttl_seconds", defaults["flight_cache_ttl_seconds"].default
            ),
            "flight_cache_max_entries": flights.get(
                "cache_max_entries", defaults["flight_cache_max_entries"].default
            ),
            "flight_rate_limit_calls": flights.get(
                "rate_limit_calls", defaults["flight_rate_limit_calls"].default
            ),
            "flight_rate_limit_window_seconds": flights.get(
                "rate_limit_window_seconds",
                defaults["flight_rate_limit_window_seconds"].default,
            ),
            "llm_model": llm.get("model", defaults["llm_model"].default),
            "llm_max_tokens": llm.get("max_tokens", defaults["llm_max_tokens"].default),
            "llm_temperature": llm.get("temperature", defaults["llm_temperature"].default),
            "log_level": data.get("log_level", defaults["log_level"].default),
            "timeouts": timeouts,
        }
        if "sources" in research:
            kwargs["enabled_sources"] = list(research["sources"])

        return cls(**kwargs)


# ===========================================================================
# SINGLETON SETTINGS ACCESSOR
# ===========================================================================

_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global Settings singleton.

    On first call, loads from ``config/settings.yaml`` (or defaults).
    Subsequent calls return the cached instance.

    Returns:
        The global Settings instance.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.from_yaml()
    return _settings_instance


def reset_settings() -> None:
    """
    Reset the cached Settings singleton.

    Useful for testing or when configuration files have been updated
    at runtime.
    """
    global _settings_instance
    _settings_instance = None


# ===========================================================================
# ENVIRONMENT VARIABLE VALIDATION
# ===========================================================================

# Required environment variables for the system to function
REQUIRED_ENV_VARS: List[str] = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "ANTHROPIC_API_KEY",
]

# Provider credentials. A missing key disables that source at runtime.
OPTIONAL_ENV_VARS: List[str] = [
    "SERPAPI_KEY",
    "DIFFBOT_TOKEN",
    "APOLLO_API_KEY",
    "PDL_API_KEY",
    "LINKEDIN_CLIENT_ID",
    "LINKEDIN_CLIENT_SECRET",
    "REDDIT_CLIENT_ID",
    "REDDIT_CLIENT_SECRET",
    "AVIATIONSTACK_API_KEY",
]


def validate_env(strict: bool = True) -> Dict[str, bool]:
    """
    Validate that required environment variables are set.

    Args:
        strict: If ``True``, raise ``ConfigurationError`` when any required
            variable is missing. If ``False``, return the status dict
            without raising.

    Returns:
        Dict mapping variable name to presence status (``True`` if set).

    Raises:
        ConfigurationError: If ``strict=True`` and required vars are missing.
    """
    status: Dict[str, bool] = {}
    missing: List[str] = []

    for var in REQUIRED_ENV_VARS:
        present = bool(os.environ.get(var))
        status[var] = present
        if not present:
            missing.append(var)

    for var in OPTIONAL_ENV_VARS:
        status[var] = bool(os.environ.get(var))
        if not status[var]:
            logger.info("Optional provider credential %s is not set", var)

    if strict and missing:
        raise ConfigurationError(
            f"Missing required environment variables: {missing}. "
            f"Copy .env.example to .env and fill in the values."
        )

    return status
