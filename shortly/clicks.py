"""Recording of link visits and their statistics."""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from .geo import GeoService
from .models import ClickStats, DayCount, NameCount
from .useragent import parse_user_agent

logger = logging.getLogger(__name__)

_TOP_N_COLUMNS = frozenset({"referer", "country", "browser", "device", "os"})


class ClickService:
    """Stores clicks and summarises them per link."""

    def __init__(self, db: sqlite3.Connection, geo: Optional[GeoService] = None) -> None:
        self._db = db
        self._geo = geo

    def record(self, link_id: int, ip: str, user_agent: str, referer: str) -> None:
        """Store one visit, classifying the client and locating its address."""
        device, browser, os_name = parse_user_agent(user_agent)
        country = city = ""
        if self._geo is not None:
            try:
                result = self._geo.lookup(ip)
            except (OSError, ValueError) as exc:
                logger.warning("geo lookup failed for %s: %s", ip, exc)
            else:
                country, city = result.country, result.city
        self._db.execute(
            "INSERT INTO clicks (link_id, ip_address, user_agent, referer, country, city, "
            "device, browser, os) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (link_id, ip, user_agent, referer, country, city, device, browser, os_name),
        )

    def get_stats(self, link_id: int, days: int) -> ClickStats:
        """Totals for the link, with a per-day series over the last days."""
        (total,) = self._db.execute(
            "SELECT COUNT(*) FROM clicks WHERE link_id=?", (link_id,)
        ).fetchone()
        (unique,) = self._db.execute(
            "SELECT COUNT(DISTINCT ip_address) FROM clicks WHERE link_id=?", (link_id,)
        ).fetchone()
        by_day = [
            DayCount(date=day, count=count)
            for day, count in self._db.execute(
                "SELECT DATE(created_at) AS day, COUNT(*) FROM clicks "
                "WHERE link_id=? AND created_at >= datetime('now', ?) "
                "GROUP BY day ORDER BY day",
                (link_id, f"-{days} days"),
            )
        ]
        return ClickStats(
            total_clicks=total,
            unique_clicks=unique,
            clicks_by_day=by_day,
            top_referrers=self._top_n(link_id, "referer", 10),
            top_countries=self._top_n(link_id, "country", 10),
            top_browsers=self._top_n(link_id, "browser", 5),
            top_devices=self._top_n(link_id, "device", 5),
            top_os=self._top_n(link_id, "os", 5),
        )

    def _top_n(self, link_id: int, column: str, limit: int) -> list[NameCount]:
        if column not in _TOP_N_COLUMNS:
            raise ValueError(f"unknown click column {column!r}")
        rows = self._db.execute(
            f"SELECT COALESCE(NULLIF({column}, ''), 'direct') AS name, COUNT(*) AS count "
            "FROM clicks WHERE link_id=? GROUP BY name ORDER BY count DESC, name LIMIT ?",
            (link_id, limit),
        )
        return [NameCount(name=name, count=count) for name, count in rows]