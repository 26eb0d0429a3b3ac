"""User registration, login and token issuing."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from .models import CreateUserRequest, LoginRequest, TokenResponse, UserResponse

TOKEN_LIFETIME = timedelta(hours=24)
USER_PASSWORD_ROUNDS = 12


class AuthError(Exception):
    """Registration or login was refused."""


def _parse_time(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class AuthService:
    """Creates accounts and issues signed tokens for them."""

    def __init__(
        self, db: sqlite3.Connection, secret: str, *, rounds: int = USER_PASSWORD_ROUNDS
    ) -> None:
        self._db = db
        self._secret = secret
        self._rounds = rounds

    def register(self, req: CreateUserRequest) -> TokenResponse:
        """Create a user and return a token for it."""
        (exists,) = self._db.execute(
            "SELECT EXISTS(SELECT 1 FROM users WHERE email=? OR username=?)",
            (req.email, req.username),
        ).fetchone()
        if exists:
            raise AuthError("email or username already taken")

        hashed = bcrypt.hashpw(req.password.encode(), bcrypt.gensalt(rounds=self._rounds))
        cursor = self._db.execute(
            "INSERT INTO users (username, email, password_hash) VALUES (?, ?, ?)",
            (req.username, req.email, hashed.decode()),
        )
        user_id, username, email, is_active, created_at = self._db.execute(
            "SELECT id, username, email, is_active, created_at FROM users WHERE id=?",
            (cursor.lastrowid,),
        ).fetchone()
        return self._token_response(user_id, username, email, is_active, created_at)

    def login(self, req: LoginRequest) -> TokenResponse:
        """Check the credentials and return a fresh token."""
        row = self._db.execute(
            "SELECT id, username, email, password_hash, is_active, created_at "
            "FROM users WHERE email=?",
            (req.email,),
        ).fetchone()
        if row is None:
            raise AuthError("invalid credentials")
        user_id, username, email, stored_hash, is_active, created_at = row
        if not is_active:
            raise AuthError("account disabled")
        try:
            matches = bcrypt.checkpw(req.password.encode(), stored_hash.encode())
        except ValueError:
            matches = False
        if not matches:
            raise AuthError("invalid credentials")
        return self._token_response(user_id, username, email, is_active, created_at)

    def _token_response(
        self, user_id: int, username: str, email: str, is_active: int, created_at: str
    ) -> TokenResponse:
        return TokenResponse(
            token=self._generate_token(user_id),
            user=UserResponse(
                id=user_id,
                username=username,
                email=email,
                is_active=bool(is_active),
                created_at=_parse_time(created_at),
            ),
        )

    def _generate_token(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "exp": int((now + TOKEN_LIFETIME).timestamp()),
            "iat": int(now.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm="HS256")