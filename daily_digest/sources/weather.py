"""Daily Digest — Weather source (open-meteo).

Today's min/max temperature and max precipitation probability for the
configured coordinates. Not cached: the call is cheap and unauthenticated.
"""

from __future__ import annotations

from typing import Any, Optional

from daily_digest.errors import SourceError
from daily_digest.sources.base import NOT_AVAILABLE, SourceAdapter, SourceReading, to_float
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)

_DAILY_FIELDS = "temperature_2m_max,temperature_2m_min,precipitation_probability_max"


def _first(daily: dict[str, Any], key: str) -> Optional[float]:
    values = daily.get(key)
    if not isinstance(values, list) or not values:
        return None
    return to_float(values[0])


def format_weather(data: Any) -> str:
    """Render the weather line from an open-meteo forecast payload.

    Args:
        data: Parsed JSON response.

    Returns:
        e.g. '🌤 12.3°/19.8° 🌧40%'. Individual missing values render 'N/A'.

    Raises:
        SourceError: If the 'daily' block is missing entirely.
    """
    daily = data.get("daily") if isinstance(data, dict) else None
    if not isinstance(daily, dict):
        raise SourceError("open-meteo response missing 'daily' block")

    t_min = _first(daily, "temperature_2m_min")
    t_max = _first(daily, "temperature_2m_max")
    rain = _first(daily, "precipitation_probability_max")

    min_text = f"{t_min:.1f}" if t_min is not None else NOT_AVAILABLE
    max_text = f"{t_max:.1f}" if t_max is not None else NOT_AVAILABLE
    if rain is None:
        rain_text = NOT_AVAILABLE
    else:
        rain_text = str(int(rain)) if rain.is_integer() else str(rain)
    return f"🌤 {min_text}°/{max_text}° 🌧{rain_text}%"


class WeatherSource(SourceAdapter):
    """Daily forecast for the configured location."""

    name = "open_meteo_weather"
    fallback = "🌤 Hava: N/A"

    async def fetch(self) -> SourceReading:
        location = self.config.location
        params = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "daily": _DAILY_FIELDS,
            "timezone": location.timezone,
        }
        data = await self.client.get_json(self.config.sources.weather_url, params=params)
        text = format_weather(data)
        logger.debug("Weather for %s: %s", location.city, text)
        return SourceReading(text)
