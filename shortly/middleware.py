"""Bearer-token authentication and request logging for the web app."""

from __future__ import annotations

import functools
import json
import logging
import math
import time
from typing import Any, Callable

import jwt
from flask import Flask, Response, g, has_app_context, request

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
_ALGORITHMS = ["HS256", "HS384", "HS512"]


class TokenError(Exception):
    """The request carries no usable bearer token."""


def user_id_from_header(header: str, secret: str) -> int:
    """Return the user id from an 'Authorization: Bearer ...' value."""
    if not header.startswith(BEARER_PREFIX):
        raise TokenError("missing token")
    try:
        claims = jwt.decode(
            header[len(BEARER_PREFIX):], secret, algorithms=_ALGORITHMS,
            options={"verify_sub": False},
        )
    except jwt.PyJWTError as exc:
        raise TokenError("invalid token") from exc
    subject = claims.get("sub")
    if (
        isinstance(subject, bool)
        or not isinstance(subject, (int, float))
        or not math.isfinite(subject)
    ):
        raise TokenError("invalid token")
    return int(subject)


def jwt_required(secret: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator that rejects requests without a valid token and records the user id."""

    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(view)
        def guarded(*args: Any, **kwargs: Any) -> Any:
            try:
                g.user_id = user_id_from_header(request.headers.get("Authorization", ""), secret)
            except TokenError as exc:
                body = json.dumps({"error": str(exc)}, separators=(",", ":")) + "\n"
                return Response(body, status=401, mimetype="application/json")
            return view(*args, **kwargs)

        return guarded

    return decorator


def get_user_id() -> int:
    """The authenticated user's id for the current request, or 0."""
    user_id = g.get("user_id") if has_app_context() else None
    return user_id if isinstance(user_id, int) and not isinstance(user_id, bool) else 0


def install_request_logger(app: Flask) -> None:
    """Log method, path, status and duration of every request."""

    @app.before_request
    def _start_timer() -> None:
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response: Response) -> Response:
        started = g.pop("request_started", None)
        elapsed = time.perf_counter() - started if started is not None else 0.0
        logger.info(
            "%s %s %d %.3fms", request.method, request.path, response.status_code, elapsed * 1000
        )
        return response