"""Creating, resolving, listing and deleting short links."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple, Optional

import redis

from .cache import CacheMiss, RedisCache
from .config import Config
from .models import CreateLinkRequest, Link, LinkListResponse
from .passwords import hash_link_password
from .shortcode import generate_short_code, is_valid_custom_code
from .validate import is_valid_url

CACHE_TTL = timedelta(hours=24)
_CODE_ATTEMPTS = 5
_LINK_COLUMNS = (
    "id, short_code, original_url, title, user_id, is_active, "
    "expires_at, max_clicks, created_at, updated_at"
)


class LinkError(Exception):
    """A link could not be created, found or used."""


class ProtectedLink(NamedTuple):
    id: int
    original_url: str
    password_hash: str


def _to_db(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


def _from_db(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    moment = datetime.fromisoformat(value)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _availability_problem(is_active: Any, expires_at: Optional[str]) -> Optional[str]:
    if not is_active:
        return "link disabled"
    expiry = _from_db(expires_at)
    if expiry is not None and datetime.now(timezone.utc) > expiry:
        return "link expired"
    return None


def _cache_key(code: str) -> str:
    return f"link:{code}"


class LinkService:
    """Business rules for short links, with an optional redirect cache."""

    def __init__(self, db: sqlite3.Connection, cache: Optional[RedisCache], cfg: Config) -> None:
        self._db = db
        self._cache = cache
        self._cfg = cfg

    def create(self, user_id: int, req: CreateLinkRequest) -> Link:
        """Store a new link for the user and return it."""
        if not is_valid_url(req.url):
            raise LinkError("invalid url")

        if req.custom_code:
            if not is_valid_custom_code(req.custom_code):
                raise LinkError(
                    "invalid custom code: 3-20 alphanumeric chars, hyphens, underscores"
                )
            if self._code_taken(req.custom_code):
                raise LinkError("short code already taken")
            code = req.custom_code
        else:
            code = self._new_code()

        expires_at = None
        if req.expires_in > 0:
            expires_at = _to_db(datetime.now(timezone.utc) + timedelta(days=req.expires_in))
        password_hash = hash_link_password(req.password) if req.password else None

        try:
            cursor = self._db.execute(
                "INSERT INTO links (short_code, original_url, title, user_id, expires_at, "
                "max_clicks, password_hash) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (code, req.url, req.title, user_id, expires_at, req.max_clicks, password_hash),
            )
        except sqlite3.Error as exc:
            raise LinkError(f"insert link: {exc}") from exc
        row = self._db.execute(
            f"SELECT {_LINK_COLUMNS} FROM links WHERE id=?", (cursor.lastrowid,)
        ).fetchone()
        link = self._link_from_row(row)

        for tag_name in req.tags:
            self._attach_tag(link.id, user_id, tag_name)

        self._cache_set(code, link.original_url)
        return link

    def resolve(self, code: str) -> tuple[str, int]:
        """Return the target URL and link id for a short code."""
        cached = self._cache_get(code)
        if cached is not None:
            row = self._db.execute(
                "SELECT id, is_active, expires_at FROM links WHERE short_code=?", (code,)
            ).fetchone()
            problem = "not found" if row is None else _availability_problem(row[1], row[2])
            if problem:
                self._cache_delete(code)
                raise LinkError(problem)
            return cached, row[0]

        row = self._db.execute(
            "SELECT id, original_url, is_active, expires_at, max_clicks FROM links WHERE short_code=?",
            (code,),
        ).fetchone()
        if row is None:
            raise LinkError("not found")
        link_id, original_url, is_active, expires_at, max_clicks = row
        problem = _availability_problem(is_active, expires_at)
        if problem:
            raise LinkError(problem)
        if max_clicks is not None:
            (count,) = self._db.execute(
                "SELECT COUNT(*) FROM clicks WHERE link_id=?", (link_id,)
            ).fetchone()
            if count >= max_clicks:
                raise LinkError("click limit reached")

        self._cache_set(code, original_url)
        return original_url, link_id

    def list_by_user(self, user_id: int, page: int, per_page: int) -> LinkListResponse:
        """One page of the user's links, newest first, with click counts."""
        offset = (page - 1) * per_page
        (total,) = self._db.execute(
            "SELECT COUNT(*) FROM links WHERE user_id=?", (user_id,)
        ).fetchone()
        rows = self._db.execute(
            f"SELECT {_LINK_COLUMNS}, "
            "(SELECT COUNT(*) FROM clicks WHERE link_id=l.id) AS click_count "
            "FROM links l WHERE l.user_id=? ORDER BY l.created_at DESC, l.id DESC "
            "LIMIT ? OFFSET ?",
            (user_id, per_page, offset),
        )
        links = [self._link_from_row(row) for row in rows]
        return LinkListResponse(links=links, total=total, page=page, per_page=per_page)

    def delete(self, link_id: int, user_id: int) -> None:
        """Remove the user's link and its cached redirect."""
        row = self._db.execute(
            "SELECT short_code FROM links WHERE id=? AND user_id=?", (link_id, user_id)
        ).fetchone()
        if row is None:
            raise LinkError("not found")
        self._db.execute("DELETE FROM links WHERE id=? AND user_id=?", (link_id, user_id))
        self._cache_delete(row[0])

    def find_protected(self, code: str) -> ProtectedLink:
        """Return an active link with its password hash ('' when it has none)."""
        row = self._db.execute(
            "SELECT id, original_url, password_hash FROM links WHERE short_code=? AND is_active=1",
            (code,),
        ).fetchone()
        if row is None:
            raise LinkError("not found")
        link_id, original_url, password_hash = row
        return ProtectedLink(link_id, original_url, password_hash or "")

    def _code_taken(self, code: str) -> bool:
        (exists,) = self._db.execute(
            "SELECT EXISTS(SELECT 1 FROM links WHERE short_code=?)", (code,)
        ).fetchone()
        return bool(exists)

    def _new_code(self) -> str:
        for _ in range(_CODE_ATTEMPTS):
            code = generate_short_code(self._cfg.short_code_length)
            if not self._code_taken(code):
                return code
        raise LinkError("could not generate unique code")

    def _attach_tag(self, link_id: int, user_id: int, name: str) -> None:
        try:
            self._db.execute(
                "INSERT OR IGNORE INTO tags (name, user_id) VALUES (?, ?)", (name, user_id)
            )
            row = self._db.execute(
                "SELECT id FROM tags WHERE name=? AND user_id=?", (name, user_id)
            ).fetchone()
            if row is None:
                return
            self._db.execute(
                "INSERT OR IGNORE INTO link_tags (link_id, tag_id) VALUES (?, ?)",
                (link_id, row[0]),
            )
        except sqlite3.Error:
            return

    def _link_from_row(self, row: Any) -> Link:
        (link_id, code, original_url, title, user_id, is_active,
         expires_at, max_clicks, created_at, updated_at, *rest) = row
        return Link(
            id=link_id,
            short_code=code,
            original_url=original_url,
            title=title or "",
            user_id=user_id,
            is_active=bool(is_active),
            expires_at=_from_db(expires_at),
            max_clicks=max_clicks,
            created_at=_from_db(created_at),
            updated_at=_from_db(updated_at),
            click_count=rest[0] if rest else 0,
            short_url=f"{self._cfg.base_url}/{code}",
        )

    def _cache_get(self, code: str) -> Optional[str]:
        if self._cache is None:
            return None
        try:
            value = self._cache.get(_cache_key(code))
        except (CacheMiss, redis.RedisError, ValueError):
            return None
        return value if isinstance(value, str) else None

    def _cache_set(self, code: str, url: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set(_cache_key(code), url, CACHE_TTL)
        except redis.RedisError:
            pass

    def _cache_delete(self, code: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.delete(_cache_key(code))
        except redis.RedisError:
            pass