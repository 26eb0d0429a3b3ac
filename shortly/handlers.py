"""HTTP handlers for accounts and short links."""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
from typing import Any, Callable, Optional

from flask import Response, redirect as http_redirect, request

from .auth import AuthError, AuthService
from .clicks import ClickService
from .links import LinkError, LinkService
from .middleware import get_user_id
from .models import CreateLinkRequest, CreateUserRequest, LoginRequest
from .passwords import verify_link_password
from .validate import is_valid_email

logger = logging.getLogger(__name__)

MAX_BULK_URLS = 50
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100
DEFAULT_STATS_DAYS = 30
MAX_STATS_DAYS = 365

Task = Callable[[], None]
Background = Callable[[Task], None]

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _in_thread(task: Task) -> None:
    threading.Thread(target=task, daemon=True).start()


def _json_response(payload: Any, status: int) -> Response:
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"
    return Response(body, status=status, mimetype="application/json")


def _error(message: str, status: int) -> Response:
    return _json_response({"error": message}, status)


def _read_json() -> Any:
    """Decode the request body; raises ValueError when it is not JSON."""
    return json.loads(request.get_data(as_text=True))


def _atoi(text: Optional[str]) -> Optional[int]:
    if text is None or not _INTEGER.fullmatch(text):
        return None
    return int(text)


class AuthHandler:
    """Registration and login endpoints."""

    def __init__(self, service: AuthService) -> None:
        self._service = service

    def register(self) -> Response:
        try:
            req = CreateUserRequest.from_dict(_read_json())
        except ValueError:
            return _error("invalid request body", 400)

        if not 3 <= len(req.username.encode("utf-8")) <= 50:
            return _error("username must be 3-50 chars", 400)
        if not is_valid_email(req.email):
            return _error("invalid email", 400)
        if len(req.password.encode("utf-8")) < 6:
            return _error("password must be at least 6 chars", 400)

        try:
            resp = self._service.register(req)
        except (AuthError, sqlite3.Error, ValueError) as exc:
            return _error(str(exc), 400)
        return _json_response(resp.to_dict(), 201)

    def login(self) -> Response:
        try:
            req = LoginRequest.from_dict(_read_json())
        except ValueError:
            return _error("invalid request body", 400)
        try:
            resp = self._service.login(req)
        except (AuthError, sqlite3.Error) as exc:
            return _error(str(exc), 401)
        return _json_response(resp.to_dict(), 200)


class LinkHandler:
    """Endpoints for managing, resolving and measuring short links."""

    def __init__(
        self,
        links: LinkService,
        clicks: ClickService,
        *,
        background: Optional[Background] = None,
    ) -> None:
        self._links = links
        self._clicks = clicks
        self._background = background or _in_thread

    def create(self) -> Response:
        user_id = get_user_id()
        try:
            req = CreateLinkRequest.from_dict(_read_json())
        except ValueError:
            return _error("invalid request body", 400)
        try:
            link = self._links.create(user_id, req)
        except (LinkError, sqlite3.Error, ValueError) as exc:
            return _error(str(exc), 400)
        return _json_response(link.to_dict(), 201)

    def list(self) -> Response:
        user_id = get_user_id()
        page = _atoi(request.args.get("page")) or 0
        per_page = _atoi(request.args.get("per_page")) or 0
        if page < 1:
            page = 1
        if per_page < 1 or per_page > MAX_PER_PAGE:
            per_page = DEFAULT_PER_PAGE
        try:
            resp = self._links.list_by_user(user_id, page, per_page)
        except sqlite3.Error:
            return _error("error fetching links", 500)
        return _json_response(resp.to_dict(), 200)

    def delete(self, link_id: str) -> Response:
        user_id = get_user_id()
        parsed = _atoi(link_id)
        if parsed is None:
            return _error("invalid id", 400)
        try:
            self._links.delete(parsed, user_id)
        except (LinkError, sqlite3.Error) as exc:
            return _error(str(exc), 404)
        return _json_response({"msg": "deleted"}, 200)

    def redirect(self, code: str) -> Response:
        try:
            url, link_id = self._links.resolve(code)
        except (LinkError, sqlite3.Error) as exc:
            return _error(str(exc), 404)
        self._record_click(link_id)
        return http_redirect(url, code=301)

    def get_stats(self, link_id: str) -> Response:
        parsed = _atoi(link_id)
        if parsed is None:
            return _error("invalid id", 400)
        days = _atoi(request.args.get("days")) or 0
        if days < 1 or days > MAX_STATS_DAYS:
            days = DEFAULT_STATS_DAYS
        try:
            stats = self._clicks.get_stats(parsed, days)
        except sqlite3.Error:
            return _error("error", 500)
        return _json_response(stats.to_dict(), 200)

    def bulk_create(self) -> Response:
        user_id = get_user_id()
        try:
            data = _read_json()
            if not isinstance(data, dict):
                raise ValueError("body must be an object")
            raw = data.get("urls") or []
            if not isinstance(raw, list):
                raise ValueError("urls must be a list")
            items = [CreateLinkRequest.from_dict(item) for item in raw]
        except ValueError:
            return _error("invalid request body", 400)

        if not items:
            return _error("urls array is empty", 400)
        if len(items) > MAX_BULK_URLS:
            return _error(f"max {MAX_BULK_URLS} urls per batch", 400)

        links = []
        errors = []
        for index, item in enumerate(items):
            try:
                links.append(self._links.create(user_id, item).to_dict())
            except (LinkError, sqlite3.Error, ValueError) as exc:
                errors.append({"index": index, "url": item.url, "error": str(exc)})

        payload: dict[str, Any] = {"links": links}
        if errors:
            payload["errors"] = errors
        return _json_response(payload, 201)

    def password_redirect(self, code: str) -> Response:
        try:
            data = _read_json()
        except ValueError:
            return _error("invalid request", 400)
        if data is None:
            data = {}
        if not isinstance(data, dict) or not isinstance(data.get("password") or "", str):
            return _error("invalid request", 400)
        password = data.get("password") or ""

        try:
            link = self._links.find_protected(code)
        except (LinkError, sqlite3.Error):
            return _error("not found", 404)

        if not link.password_hash:
            return _json_response({"url": link.original_url}, 200)
        if not verify_link_password(password, link.password_hash):
            return _error("wrong password", 403)

        self._record_click(link.id)
        return _json_response({"url": link.original_url}, 200)

    def _record_click(self, link_id: int) -> None:
        ip = request.remote_addr or ""
        user_agent = request.headers.get("User-Agent", "")
        referer = request.headers.get("Referer", "")
        clicks = self._clicks

        def task() -> None:
            try:
                clicks.record(link_id, ip, user_agent, referer)
            except Exception:
                logger.exception("recording click for link %s failed", link_id)

        self._background(task)