"""Daily Digest — Favorite-team matches source (ESPN scoreboard).

Queries each configured league's scoreboard for today's date (in the
service timezone), keeps events involving a favorite team, and renders
up to N lines sorted by kick-off. The rendered section is cached per
date for a few minutes.
"""

from __future__ import annotations

import asyncio
import html
import re
from datetime import datetime
from typing import Any, Iterable, Optional

from daily_digest.errors import SourceError
from daily_digest.sources.base import SourceAdapter, SourceReading
from daily_digest.utils.clock import date_key, format_clock
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)

NO_MATCHES = "⚽ Bugün favori maç yok"

_TURKISH_FOLD = str.maketrans({
    "ı": "i",
    "ş": "s",
    "ğ": "g",
    "ü": "u",
    "ö": "o",
    "ç": "c",
})
_NON_ALNUM = re.compile(r"[^a-z0-9 ]")
_SPACES = re.compile(r"\s+")


def normalize_team(name: Optional[str]) -> str:
    """Fold a team name for comparison: 'Beşiktaş JK' → 'besiktas jk'."""
    text = (name or "").lower().translate(_TURKISH_FOLD)
    text = _NON_ALNUM.sub("", text)
    return _SPACES.sub(" ", text).strip()


def _parse_start(iso: str) -> Optional[datetime]:
    if not iso:
        return None
    try:
        return datetime.fromisoformat(iso.replace("Z", "+00:00"))
    except ValueError:
        return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _match_line(event: dict[str, Any], favorites: set[str], tz) -> Optional[tuple[str, str]]:
    """Build (start_iso, line) for a favorite-team event, or None to skip it."""
    competitions = event.get("competitions")
    competition = _as_dict(competitions[0]) if isinstance(competitions, list) and competitions else {}
    competitors = competition.get("competitors")
    competitors = [c for c in competitors if isinstance(c, dict)] if isinstance(competitors, list) else []
    if len(competitors) < 2:
        return None

    home = next((c for c in competitors if c.get("homeAway") == "home"), competitors[0])
    away = next((c for c in competitors if c.get("homeAway") == "away"), competitors[1])
    home_name = str(_as_dict(home.get("team")).get("displayName") or "")
    away_name = str(_as_dict(away.get("team")).get("displayName") or "")

    if normalize_team(home_name) not in favorites and normalize_team(away_name) not in favorites:
        return None

    start_iso = event.get("date")
    if not isinstance(start_iso, str):
        start_iso = ""
    start = _parse_start(start_iso)

    status_type = _as_dict(_as_dict(event.get("status")).get("type"))
    status = status_type.get("shortDetail") or status_type.get("description") or ""
    completed = status_type.get("completed") is True
    show_score = status_type.get("state") in ("in", "post") or completed

    parts: list[str] = []
    if start is not None:
        parts.append(format_clock(start, tz))
    home_score, away_score = home.get("score"), away.get("score")
    if show_score and home_score is not None and away_score is not None:
        parts.append(f"{home_score}-{away_score}")
    if status:
        parts.append(html.escape(str(status), quote=False))

    line = f"• {html.escape(home_name, quote=False)} vs {html.escape(away_name, quote=False)}"
    if parts:
        line += " | " + " | ".join(parts)
    return start_iso, line


def format_matches(
    events: Iterable[Any],
    favorite_teams: Iterable[str],
    tz,
    limit: int = 6,
) -> str:
    """Render the matches section from raw ESPN events.

    Args:
        events: Events from one or more scoreboards.
        favorite_teams: Team display names to keep.
        tz: Timezone for kick-off times.
        limit: Maximum number of match lines.

    Returns:
        '⚽ Maçlar:' followed by one line per match, or the no-matches text.
    """
    favorites = {normalize_team(t) for t in favorite_teams}
    matches = []
    for event in events:
        if not isinstance(event, dict):
            continue
        built = _match_line(event, favorites, tz)
        if built is not None:
            matches.append(built)

    matches.sort(key=lambda m: m[0])
    top = [line for _, line in matches[:limit]]
    if not top:
        return NO_MATCHES
    return "⚽ Maçlar:\n" + "\n".join(top)


class MatchesSource(SourceAdapter):
    """Today's fixtures and scores for the favorite teams."""

    name = "espn_matches"
    fallback = NO_MATCHES

    async def _league_events(self, league: str, day: str) -> list[Any]:
        url = self.config.sources.scoreboard_url.format(league=league)
        data = await self.client.get_json(url, params={"dates": day})
        events = data.get("events") if isinstance(data, dict) else None
        return events if isinstance(events, list) else []

    async def fetch(self) -> SourceReading:
        sources = self.config.sources
        tz = self.config.location.tz
        day = date_key(tz, self.clock)
        cache_key = f"cache/espn/favs/{day}"

        cached = await self.cache.get(cache_key)
        if cached is not None:
            return SourceReading(cached)

        results = await asyncio.gather(
            *(self._league_events(league, day) for league in sources.leagues),
            return_exceptions=True,
        )

        events: list[Any] = []
        failed = 0
        for league, result in zip(sources.leagues, results):
            if isinstance(result, BaseException):
                failed += 1
                logger.warning("Scoreboard %s failed: %s", league, result)
                continue
            events.extend(result)

        if sources.leagues and failed == len(sources.leagues):
            raise SourceError(f"All {failed} scoreboards failed")

        text = format_matches(events, sources.favorite_teams, tz, sources.max_matches)
        if failed == 0:
            await self.cache.put(cache_key, text, sources.matches_cache_seconds)
        return SourceReading(text)
