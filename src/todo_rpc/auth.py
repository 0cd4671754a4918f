"""
Email/password authentication with opaque session tokens.

The todo service consumes this module through two seams only:

- `AuthService.get_session` turns request headers into a `Principal` (or None);
- `AuthService.handle` serves raw requests forwarded from the `/api/auth/*`
  pass-through route and answers with a raw response.
"""

from __future__ import annotations

import json
import logging
import secrets
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from http.cookies import CookieError, SimpleCookie
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import bcrypt
from pydantic import BaseModel, ValidationError

from .errors import validation_details
from .models import SessionEntity, UserEntity
from .schemas import SessionOut, SignInInput, SignUpInput, UserOut
from .utils import from_micros, now_micros

logger = logging.getLogger(__name__)

SESSION_COOKIE = "todo_session"

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class AuthRequest:
    """A raw HTTP request forwarded to the auth collaborator."""

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class AuthResponse:
    """A raw HTTP response produced by the auth collaborator."""

    status: int
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    @classmethod
    def json(cls, status: int, payload: Any, headers: Optional[List[Tuple[str, str]]] = None) -> "AuthResponse":
        return cls(
            status=status,
            headers=[("content-type", "application/json"), *(headers or [])],
            body=json.dumps(payload).encode("utf-8"),
        )


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request."""

    user: UserEntity
    session: SessionEntity

    @property
    def user_id(self) -> str:
        return self.user["id"]


def _error(status: int, code: str, message: str, detail: Any = None) -> AuthResponse:
    payload: Dict[str, Any] = {"code": code, "message": message}
    if detail is not None:
        payload["detail"] = detail
    return AuthResponse.json(status, payload)


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json")


# PUBLIC_INTERFACE
def session_token_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    """
    Extract a session token from request headers.

    Looks at `Authorization: Bearer <token>` first, then at the session cookie.
    Header names are expected in lower case.
    """
    authorization = headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    raw_cookie = headers.get("cookie")
    if not raw_cookie:
        return None
    jar: SimpleCookie = SimpleCookie()
    try:
        jar.load(raw_cookie)
    except CookieError:
        return None
    morsel = jar.get(SESSION_COOKIE)
    return morsel.value if morsel and morsel.value else None


class AuthService:
    """
    Users and sessions stored next to the todo table.

    All methods take an explicit sqlite connection; the caller owns the unit
    of work (commit/rollback).
    """

    def __init__(
        self,
        session_ttl_seconds: int = 7 * 24 * 3600,
        cookie_secure: bool = False,
        bcrypt_rounds: int = 12,
    ) -> None:
        self._session_ttl = timedelta(seconds=session_ttl_seconds)
        self._cookie_secure = cookie_secure
        self._bcrypt_rounds = bcrypt_rounds
        # Sign-in for an unknown email is checked against this hash.
        self._dummy_hash = self.hash_password(secrets.token_urlsafe(16))
        self._routes: Dict[Tuple[str, str], Callable[[sqlite3.Connection, AuthRequest], AuthResponse]] = {
            ("POST", "sign-up/email"): self._sign_up,
            ("POST", "sign-in/email"): self._sign_in,
            ("POST", "sign-out"): self._sign_out,
            ("GET", "get-session"): self._get_session,
            ("POST", "delete-user"): self._delete_user,
        }

    # ----- passwords -----

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._bcrypt_rounds)).decode("ascii")

    def verify_password(self, password: str, password_hash: str) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > _BCRYPT_MAX_BYTES:
            return False
        return bcrypt.checkpw(encoded, password_hash.encode("ascii"))

    # ----- rows -----

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> UserEntity:
        return {
            "id": row["id"],
            "email": row["email"],
            "name": row["name"],
            "email_verified": bool(row["email_verified"]),
            "image": row["image"],
            "created_at": from_micros(row["created_at"]),
            "updated_at": from_micros(row["updated_at"]),
        }

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> SessionEntity:
        return {
            "id": row["id"],
            "token": row["token"],
            "user_id": row["user_id"],
            "expires_at": from_micros(row["expires_at"]),
            "created_at": from_micros(row["created_at"]),
        }

    def create_user(self, conn: sqlite3.Connection, email: str, password: str, name: str) -> UserEntity:
        """Insert a user. Raises sqlite3.IntegrityError when the email is taken."""
        user_id = str(uuid.uuid4())
        now = now_micros()
        conn.execute(
            """
            INSERT INTO "user" (id, email, name, email_verified, image, password_hash, created_at, updated_at)
            VALUES (?, ?, ?, 0, NULL, ?, ?, ?)
            """,
            (user_id, email.lower(), name, self.hash_password(password), now, now),
        )
        user = self.get_user(conn, user_id)
        assert user is not None
        return user

    def get_user(self, conn: sqlite3.Connection, user_id: str) -> Optional[UserEntity]:
        row = conn.execute('SELECT * FROM "user" WHERE id = ?', (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def delete_user(self, conn: sqlite3.Connection, user_id: str) -> bool:
        """Delete a user; sessions and todos go with it through ON DELETE CASCADE."""
        cur = conn.execute('DELETE FROM "user" WHERE id = ?', (user_id,))
        return cur.rowcount > 0

    def _authenticate(self, conn: sqlite3.Connection, email: str, password: str) -> Optional[UserEntity]:
        row = conn.execute('SELECT * FROM "user" WHERE email = ?', (email.lower(),)).fetchone()
        if row is None:
            self.verify_password(password, self._dummy_hash)
            return None
        if not self.verify_password(password, row["password_hash"]):
            return None
        return self._row_to_user(row)

    def create_session(self, conn: sqlite3.Connection, user_id: str) -> SessionEntity:
        session_id = str(uuid.uuid4())
        token = secrets.token_urlsafe(32)
        now = now_micros()
        # Expired sessions of this user are purged whenever a new one is issued.
        conn.execute("DELETE FROM session WHERE user_id = ? AND expires_at <= ?", (user_id, now))
        expires_at = now + int(self._session_ttl.total_seconds() * 1_000_000)
        conn.execute(
            "INSERT INTO session (id, token, user_id, expires_at, created_at) VALUES (?, ?, ?, ?, ?)",
            (session_id, token, user_id, expires_at, now),
        )
        return {
            "id": session_id,
            "token": token,
            "user_id": user_id,
            "expires_at": from_micros(expires_at),
            "created_at": from_micros(now),
        }

    def get_session(self, conn: sqlite3.Connection, headers: Mapping[str, str]) -> Optional[Principal]:
        """
        Resolve request headers to the authenticated principal.

        Unknown, missing or expired tokens resolve to None.
        """
        token = session_token_from_headers(headers)
        if not token:
            return None
        row = conn.execute("SELECT * FROM session WHERE token = ?", (token,)).fetchone()
        if row is None:
            return None
        if row["expires_at"] <= now_micros():
            return None
        user = self.get_user(conn, row["user_id"])
        if user is None:
            return None
        return Principal(user=user, session=self._row_to_session(row))

    # ----- cookies -----

    def _session_cookie(self, token: str, max_age: int) -> Tuple[str, str]:
        parts = [f"{SESSION_COOKIE}={token}", "Path=/", "HttpOnly", "SameSite=Lax", f"Max-Age={max_age}"]
        if self._cookie_secure:
            parts.append("Secure")
        return ("set-cookie", "; ".join(parts))

    def _login_response(self, user: UserEntity, session: SessionEntity) -> AuthResponse:
        cookie = self._session_cookie(session["token"], int(self._session_ttl.total_seconds()))
        return AuthResponse.json(
            200,
            {"token": session["token"], "user": _dump(UserOut(**user))},
            headers=[cookie],
        )

    # ----- routes -----

    def handle(self, conn: sqlite3.Connection, request: AuthRequest) -> AuthResponse:
        """Serve one forwarded auth request."""
        key = (request.method.upper(), request.path.strip("/"))
        route = self._routes.get(key)
        if route is None:
            return _error(404, "NOT_FOUND", f"No auth route for {key[0]} /{key[1]}")
        return route(conn, request)

    def _parse(self, request: AuthRequest, model: type) -> Any:
        try:
            payload = json.loads(request.body or b"{}")
        except ValueError:
            return _error(400, "INVALID_BODY", "Request body must be JSON")
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            return _error(422, "VALIDATION_ERROR", "Request validation failed", validation_details(exc))

    def _sign_up(self, conn: sqlite3.Connection, request: AuthRequest) -> AuthResponse:
        data = self._parse(request, SignUpInput)
        if isinstance(data, AuthResponse):
            return data
        if len(data.password.encode("utf-8")) > _BCRYPT_MAX_BYTES:
            return _error(422, "PASSWORD_TOO_LONG", "Password is too long")
        try:
            user = self.create_user(conn, str(data.email), data.password, data.name)
        except sqlite3.IntegrityError:
            return _error(422, "USER_ALREADY_EXISTS", "User already exists")
        session = self.create_session(conn, user["id"])
        logger.info("Signed up user %s", user["id"])
        return self._login_response(user, session)

    def _sign_in(self, conn: sqlite3.Connection, request: AuthRequest) -> AuthResponse:
        data = self._parse(request, SignInInput)
        if isinstance(data, AuthResponse):
            return data
        user = self._authenticate(conn, str(data.email), data.password)
        if user is None:
            logger.info("Rejected sign-in attempt")
            return _error(401, "INVALID_EMAIL_OR_PASSWORD", "Invalid email or password")
        session = self.create_session(conn, user["id"])
        return self._login_response(user, session)

    def _sign_out(self, conn: sqlite3.Connection, request: AuthRequest) -> AuthResponse:
        token = session_token_from_headers(request.headers)
        if token:
            conn.execute("DELETE FROM session WHERE token = ?", (token,))
        return AuthResponse.json(200, {"success": True}, headers=[self._session_cookie("", 0)])

    def _get_session(self, conn: sqlite3.Connection, request: AuthRequest) -> AuthResponse:
        principal = self.get_session(conn, request.headers)
        if principal is None:
            return AuthResponse.json(200, None)
        return AuthResponse.json(
            200,
            {
                "session": _dump(SessionOut(**principal.session)),
                "user": _dump(UserOut(**principal.user)),
            },
        )

    def _delete_user(self, conn: sqlite3.Connection, request: AuthRequest) -> AuthResponse:
        principal = self.get_session(conn, request.headers)
        if principal is None:
            return _error(401, "UNAUTHORIZED", "Not authenticated")
        self.delete_user(conn, principal.user_id)
        logger.info("Deleted user %s", principal.user_id)
        return AuthResponse.json(200, {"success": True}, headers=[self._session_cookie("", 0)])
