"""Daily Digest — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} or
${VAR_NAME:-default} syntax. Uses frozen dataclasses so the loaded
configuration is an immutable value injected at startup.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import yaml
from dotenv import load_dotenv

from daily_digest.errors import ConfigurationError
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?}")

# ── Defaults ─────────────────────────────────────────────
DEFAULT_FAVORITE_TEAMS = (
    "Galatasaray",
    "Fenerbahce",
    "Besiktas",
    "Trabzonspor",
    "Real Madrid",
    "Barcelona",
    "Manchester City",
    "Liverpool",
    "Bayern Munich",
    "PSG",
    "Juventus",
    "Inter",
    "Milan",
    "Arsenal",
    "Chelsea",
)

DEFAULT_LEAGUES = (
    "tur.1",
    "eng.1",
    "esp.1",
    "ita.1",
    "ger.1",
    "fra.1",
    "uefa.champions",
    "uefa.europa",
    "uefa.europa.conf",
)


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LocationConfig:
    """Where the weather is fetched for, and the timezone all dates use."""

    city: str = "Istanbul"
    latitude: float = 41.0082
    longitude: float = 28.9784
    timezone: str = "Europe/Istanbul"

    @property
    def tz(self) -> ZoneInfo:
        """The configured timezone as a ZoneInfo."""
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class TelegramConfig:
    """Configuration for the single destination chat."""

    bot_token: str = ""
    chat_id: str = ""
    api_base_url: str = "https://api.telegram.org"
    parse_mode: str = "HTML"
    disable_web_page_preview: bool = True
    timeout_seconds: float = 20.0

    def require_credentials(self) -> None:
        """Fail fast when the bot token or chat id is missing.

        Raises:
            ConfigurationError: If either credential is empty.
        """
        missing = [
            name for name, value in (
                ("TELEGRAM_BOT_TOKEN", self.bot_token),
                ("TELEGRAM_CHAT_ID", self.chat_id),
            )
            if not str(value).strip()
        ]
        if missing:
            raise ConfigurationError(f"Missing {' / '.join(missing)}")


@dataclass(frozen=True)
class DeliveryConfig:
    """Dedupe, lock, pending and send-retry tuning."""

    enable_daily_dedupe: bool = True
    include_debug_sources: bool = False
    execution_lock_ttl_seconds: int = 120
    manual_cooldown_seconds: int = 60
    sent_marker_ttl_seconds: int = 23 * 3600
    pending_ttl_seconds: int = 48 * 3600
    send_max_attempts: int = 6
    send_max_total_wait_seconds: float = 45.0
    default_retry_after_seconds: float = 5.0


@dataclass(frozen=True)
class SourcesConfig:
    """Upstream endpoints, favorites and per-source cache TTLs."""

    user_agent: str = "newsdailyreport/1.0"
    timeout_seconds: float = 15.0
    weather_url: str = "https://api.open-meteo.com/v1/forecast"
    metals_url: str = "https://stooq.com/q/d/l/"
    metals_symbols: tuple[str, str] = ("xauusd", "xagusd")
    crypto_url: str = "https://api.coingecko.com/api/v3/simple/price"
    scoreboard_url: str = (
        "https://site.api.espn.com/apis/site/v2/sports/soccer/{league}/scoreboard"
    )
    leagues: tuple[str, ...] = DEFAULT_LEAGUES
    favorite_teams: tuple[str, ...] = DEFAULT_FAVORITE_TEAMS
    max_matches: int = 6
    crypto_cache_seconds: int = 600
    metals_cache_seconds: int = 6 * 3600
    matches_cache_seconds: int = 900


@dataclass(frozen=True)
class ScheduleConfig:
    """Crontab expressions, evaluated in the location timezone."""

    crontabs: tuple[str, ...] = ("0 8 * * *", "15 8 * * *", "30 8 * * *")


@dataclass(frozen=True)
class ServerConfig:
    """Manual trigger HTTP server binding."""

    host: str = "0.0.0.0"
    port: int = 8787


@dataclass(frozen=True)
class StoreConfig:
    """Which key-value store backs locks, markers, pending and caches."""

    backend: str = "sqlite"
    path: str = "data/daily_digest.db"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    location: LocationConfig = field(default_factory=LocationConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = "INFO"


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    ${VAR_NAME:-default} falls back to `default` when the variable is unset.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all placeholders replaced.

    Raises:
        ValueError: If a referenced variable without default is not set.
    """
    if isinstance(value, str):
        def _replace(match: re.Match) -> str:
            var_name, default = match.group(1), match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            raise ValueError(
                f"Environment variable '${{{var_name}}}' is required but not set. "
                f"Add it to your .env file or export it in your shell."
            )
        return ENV_VAR_PATTERN.sub(_replace, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Args:
        path: Absolute or relative path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


def _as_bool(value: Any) -> bool:
    # env-substituted values arrive as strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_location_config(data: dict[str, Any]) -> LocationConfig:
    """Build a LocationConfig from the 'location' section."""
    _validate_keys(data, ["latitude", "longitude", "timezone"], "location")
    location = LocationConfig(
        city=data.get("city", LocationConfig.city),
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        timezone=data["timezone"],
    )
    try:
        location.tz
    except Exception as e:
        raise ValueError(f"Unknown timezone in 'location': {data['timezone']!r}") from e
    return location


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section.

    Credentials may be empty here; they are enforced by
    TelegramConfig.require_credentials() before any delivery.
    """
    _validate_keys(data, ["bot_token", "chat_id"], "telegram")
    defaults = TelegramConfig()
    return TelegramConfig(
        bot_token=str(data["bot_token"] or ""),
        chat_id=str(data["chat_id"] or ""),
        api_base_url=data.get("api_base_url", defaults.api_base_url),
        parse_mode=data.get("parse_mode", defaults.parse_mode),
        disable_web_page_preview=_as_bool(
            data.get("disable_web_page_preview", defaults.disable_web_page_preview)
        ),
        timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
    )


def _build_delivery_config(data: dict[str, Any]) -> DeliveryConfig:
    """Build a DeliveryConfig from the optional 'delivery' section."""
    d = DeliveryConfig()
    config = DeliveryConfig(
        enable_daily_dedupe=_as_bool(data.get("enable_daily_dedupe", d.enable_daily_dedupe)),
        include_debug_sources=_as_bool(
            data.get("include_debug_sources", d.include_debug_sources)
        ),
        execution_lock_ttl_seconds=int(
            data.get("execution_lock_ttl_seconds", d.execution_lock_ttl_seconds)
        ),
        manual_cooldown_seconds=int(
            data.get("manual_cooldown_seconds", d.manual_cooldown_seconds)
        ),
        sent_marker_ttl_seconds=int(
            data.get("sent_marker_ttl_seconds", d.sent_marker_ttl_seconds)
        ),
        pending_ttl_seconds=int(data.get("pending_ttl_seconds", d.pending_ttl_seconds)),
        send_max_attempts=int(data.get("send_max_attempts", d.send_max_attempts)),
        send_max_total_wait_seconds=float(
            data.get("send_max_total_wait_seconds", d.send_max_total_wait_seconds)
        ),
        default_retry_after_seconds=float(
            data.get("default_retry_after_seconds", d.default_retry_after_seconds)
        ),
    )
    if config.send_max_attempts < 1:
        raise ValueError("delivery.send_max_attempts must be at least 1")
    return config


def _build_sources_config(data: dict[str, Any]) -> SourcesConfig:
    """Build a SourcesConfig from the optional 'sources' section."""
    d = SourcesConfig()
    symbols = tuple(data.get("metals_symbols", d.metals_symbols))
    if len(symbols) != 2:
        raise ValueError("sources.metals_symbols must list exactly two symbols (gold, silver)")
    return SourcesConfig(
        user_agent=data.get("user_agent", d.user_agent),
        timeout_seconds=float(data.get("timeout_seconds", d.timeout_seconds)),
        weather_url=data.get("weather_url", d.weather_url),
        metals_url=data.get("metals_url", d.metals_url),
        metals_symbols=symbols,  # type: ignore[arg-type]
        crypto_url=data.get("crypto_url", d.crypto_url),
        scoreboard_url=data.get("scoreboard_url", d.scoreboard_url),
        leagues=tuple(data.get("leagues", d.leagues)),
        favorite_teams=tuple(data.get("favorite_teams", d.favorite_teams)),
        max_matches=int(data.get("max_matches", d.max_matches)),
        crypto_cache_seconds=int(data.get("crypto_cache_seconds", d.crypto_cache_seconds)),
        metals_cache_seconds=int(data.get("metals_cache_seconds", d.metals_cache_seconds)),
        matches_cache_seconds=int(
            data.get("matches_cache_seconds", d.matches_cache_seconds)
        ),
    )


def _build_schedule_config(data: dict[str, Any]) -> ScheduleConfig:
    """Build a ScheduleConfig from the optional 'schedule' section."""
    crontabs = tuple(data.get("crontabs", ScheduleConfig.crontabs))
    if not crontabs:
        raise ValueError("schedule.crontabs must contain at least one expression")
    return ScheduleConfig(crontabs=crontabs)


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Args:
        data: The configuration dictionary to validate.
        required: List of required key names.
        section: Human-readable section name for error messages.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def build_config(settings: dict[str, Any]) -> AppConfig:
    """Build a typed AppConfig from an already-resolved settings mapping.

    Args:
        settings: Parsed settings with environment placeholders resolved.

    Returns:
        A validated AppConfig instance.

    Raises:
        ValueError: If required sections or keys are missing or invalid.
    """
    _validate_keys(settings, ["location", "telegram"], "settings")

    server = settings.get("server") or {}
    store = settings.get("store") or {}
    backend = store.get("backend", StoreConfig.backend)
    if backend not in ("memory", "sqlite"):
        raise ValueError(f"store.backend must be 'memory' or 'sqlite', got {backend!r}")

    return AppConfig(
        location=_build_location_config(settings["location"]),
        telegram=_build_telegram_config(settings["telegram"]),
        delivery=_build_delivery_config(settings.get("delivery") or {}),
        sources=_build_sources_config(settings.get("sources") or {}),
        schedule=_build_schedule_config(settings.get("schedule") or {}),
        server=ServerConfig(
            host=server.get("host", ServerConfig.host),
            port=int(server.get("port", ServerConfig.port)),
        ),
        store=StoreConfig(backend=backend, path=store.get("path", StoreConfig.path)),
        log_level=(settings.get("logging") or {}).get("level", "INFO"),
    )


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads .env, then settings.yaml, resolves environment variables,
    validates all required fields, and returns a typed AppConfig instance.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    # Load environment variables from .env
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings_file = settings_path or SETTINGS_PATH
    settings = _resolve_env_vars(_load_yaml(settings_file))

    config = build_config(settings)

    logger.info("Configuration loaded successfully")
    logger.debug("Timezone: %s", config.location.timezone)
    logger.debug("Store: %s (%s)", config.store.backend, config.store.path)
    logger.debug("Schedule: %s", ", ".join(config.schedule.crontabs))

    return config
