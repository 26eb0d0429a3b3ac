"""Web application assembly and the server entry point."""

from __future__ import annotations

import argparse
import functools
import ipaddress
import logging
import sqlite3
import threading
import time
from collections import deque
from fnmatch import fnmatchcase
from typing import Any, Callable, Optional

import redis
from flask import Flask, Response, request

from .auth import AuthService
from .cache import RedisCache
from .clicks import ClickService
from .config import Config, load
from .database import MigrationError, connect, run_migrations
from .handlers import AuthHandler, LinkHandler
from .links import LinkService
from .middleware import install_request_logger, jwt_required

logger = logging.getLogger(__name__)

AUTH_RATE_LIMIT = 20
AUTH_RATE_WINDOW = 60.0

_ALLOWED_ORIGINS = ("http://localhost:*", "https://*")
_ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
_ALLOWED_HEADERS = frozenset({"authorization", "content-type", "origin"})


def _real_ip() -> Optional[str]:
    headers = request.headers
    for name in ("True-Client-IP", "X-Real-IP"):
        value = headers.get(name, "")
        if value:
            candidate = value
            break
    else:
        candidate = headers.get("X-Forwarded-For", "").split(",", 1)[0]
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def _use_real_ip() -> None:
    ip = _real_ip()
    if ip:
        request.environ["REMOTE_ADDR"] = ip
        request.remote_addr = ip


class _RateLimiter:
    """Sliding-window request limit per client address."""

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic):
        self._limit = limit
        self._window = window
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and now - hits[0] >= self._window:
                hits.popleft()
            if len(hits) >= self._limit:
                return False
            hits.append(now)
            return True

    def wrap(self, view: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(view)
        def limited(*args: Any, **kwargs: Any) -> Any:
            if not self.allow(request.remote_addr or ""):
                return Response(
                    "Too Many Requests\n",
                    status=429,
                    mimetype="text/plain",
                    headers={"Retry-After": str(int(self._window))},
                )
            return view(*args, **kwargs)

        return limited


def _origin_allowed(origin: str) -> bool:
    return bool(origin) and any(fnmatchcase(origin, pattern) for pattern in _ALLOWED_ORIGINS)


def _is_preflight() -> bool:
    return request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers


def _preflight() -> Optional[Response]:
    if not _is_preflight():
        return None
    response = Response(status=200)
    response.vary.update(
        ("Origin", "Access-Control-Request-Method", "Access-Control-Request-Headers")
    )
    origin = request.headers.get("Origin", "")
    method = request.headers["Access-Control-Request-Method"].upper()
    requested = [
        name.strip()
        for name in request.headers.get("Access-Control-Request-Headers", "").split(",")
        if name.strip()
    ]
    if (
        _origin_allowed(origin)
        and method in _ALLOWED_METHODS
        and all(name.lower() in _ALLOWED_HEADERS for name in requested)
    ):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = method
        if requested:
            response.headers["Access-Control-Allow-Headers"] = ", ".join(requested)
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


def _add_cors_headers(response: Response) -> Response:
    if _is_preflight():
        return response
    response.vary.add("Origin")
    origin = request.headers.get("Origin", "")
    if _origin_allowed(origin):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


def _health() -> Response:
    return Response('{"status":"ok"}', mimetype="application/json")


def create_app(cfg: Config, db: sqlite3.Connection, cache: Optional[RedisCache]) -> Flask:
    """Wire services, handlers and routes into a Flask application."""
    app = Flask(__name__)

    auth = AuthHandler(AuthService(db, cfg.jwt_secret))
    links = LinkHandler(LinkService(db, cache, cfg), ClickService(db))

    app.before_request(_use_real_ip)
    install_request_logger(app)
    app.before_request(_preflight)
    app.after_request(_add_cors_headers)

    limiter = _RateLimiter(AUTH_RATE_LIMIT, AUTH_RATE_WINDOW)
    protect = jwt_required(cfg.jwt_secret)

    app.add_url_rule("/health", "health", _health, methods=["GET"])
    app.add_url_rule("/<code>", "redirect", links.redirect, methods=["GET"])
    app.add_url_rule("/<code>/unlock", "unlock", links.password_redirect, methods=["POST"])

    app.add_url_rule(
        "/api/auth/register", "register", limiter.wrap(auth.register), methods=["POST"]
    )
    app.add_url_rule("/api/auth/login", "login", limiter.wrap(auth.login), methods=["POST"])

    app.add_url_rule("/api/links", "create_link", protect(links.create), methods=["POST"])
    app.add_url_rule("/api/links", "list_links", protect(links.list), methods=["GET"])
    app.add_url_rule(
        "/api/links/bulk", "bulk_create_links", protect(links.bulk_create), methods=["POST"]
    )
    app.add_url_rule(
        "/api/links/<link_id>", "delete_link", protect(links.delete), methods=["DELETE"]
    )
    app.add_url_rule(
        "/api/links/<link_id>/stats", "link_stats", protect(links.get_stats), methods=["GET"]
    )
    return app


def main(argv: Optional[list[str]] = None) -> int:
    """Start the server with settings from the environment."""
    parser = argparse.ArgumentParser(
        prog="shortly",
        description="Run the link shortener server; settings come from the environment.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    cfg = load()
    try:
        port = int(cfg.port)
    except ValueError:
        logger.error("invalid port: %s", cfg.port)
        return 1

    try:
        db = connect(cfg.database_url)
    except (sqlite3.Error, ValueError) as exc:
        logger.error("db: %s", exc)
        return 1

    try:
        try:
            run_migrations(db)
        except MigrationError as exc:
            logger.error("migrations: %s", exc)
            return 1
        logger.info("db connected + migrated")

        cache: Optional[RedisCache]
        try:
            cache = RedisCache.from_url(cfg.redis_url)
        except (redis.RedisError, ValueError) as exc:
            logger.warning("warning: redis unavailable, running without cache: %s", exc)
            cache = None
        else:
            logger.info("redis connected")

        try:
            app = create_app(cfg, db, cache)
            logger.info("shortly running on :%s", cfg.port)
            app.run(host="0.0.0.0", port=port)
        finally:
            if cache is not None:
                cache.close()
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())