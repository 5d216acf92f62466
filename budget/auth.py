import hashlib
import hmac
import logging
import secrets
import sqlite3
import threading
import uuid
from typing import Callable

from .db import connect
from .models import User
from .streams import Subscription, ValueStream

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000
MIN_PASSWORD_LENGTH = 6
DEFAULT_SESSION_MAX_AGE = 30 * 24 * 60 * 60


def hash_password(password: str, *, salt: bytes | None = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS
    )
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt_hex, digest_hex = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    try:
        salt = bytes.fromhex(salt_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if rounds < 1:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(digest.hex(), digest_hex)


def _normalize_email(email: str) -> str:
    address = (email or "").strip().lower()
    if not address:
        raise ValueError("email required")
    if "@" not in address:
        raise ValueError("email invalid")
    return address


def _row_to_user(row) -> User:
    return User(id=row["id"], email=row["email"], created_at=row["created_at"])


class AuthService:
    """Email/password accounts with opaque session tokens.

    Each session token has its own auth state: ``watch_session`` reports the
    user behind one token and then ``None`` once that token logs out.
    Other sessions are unaffected. Sessions older than ``session_max_age``
    seconds no longer resolve to a user and are pruned on the next login.
    """

    def __init__(self, db_path, *, session_max_age: int = DEFAULT_SESSION_MAX_AGE):
        self.db_path = db_path
        self.session_max_age = session_max_age
        self._sessions: dict[str, ValueStream[User | None]] = {}
        self._lock = threading.Lock()

    def _cutoff(self) -> str:
        return f"-{int(self.session_max_age)} seconds"

    def register(self, email: str, password: str) -> tuple[User, str]:
        address = _normalize_email(email)
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        user_id = uuid.uuid4().hex
        with connect(self.db_path) as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users(id, email, password_hash)
                    VALUES (?, ?, ?)
                    """,
                    (user_id, address, hash_password(password)),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError("email already registered") from exc
        logger.info("registered user %s", user_id)
        return self.login(address, password)

    def login(self, email: str, password: str) -> tuple[User, str]:
        address = (email or "").strip().lower()
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (address,)
            ).fetchone()
            if row is None or not verify_password(password or "", row["password_hash"]):
                logger.info("failed login for %s", address)
                raise ValueError("invalid credentials")
            pruned = conn.execute(
                "DELETE FROM sessions WHERE created_at < datetime('now', ?)",
                (self._cutoff(),),
            ).rowcount
            token = secrets.token_urlsafe(32)
            conn.execute(
                "INSERT INTO sessions(token, user_id) VALUES (?, ?)",
                (token, row["id"]),
            )
        if pruned:
            logger.debug("pruned %d expired sessions", pruned)
        user = _row_to_user(row)
        logger.info("user %s logged in", user.id)
        return user, token

    def logout(self, token: str) -> None:
        with connect(self.db_path) as conn:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
        logger.info("session closed")
        with self._lock:
            stream = self._sessions.pop(token, None)
        if stream is not None:
            stream.emit(None)

    def user_for_token(self, token: str | None) -> User | None:
        if not token:
            return None
        with connect(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT users.id, users.email, users.created_at
                FROM sessions JOIN users ON users.id = sessions.user_id
                WHERE sessions.token = ?
                  AND sessions.created_at >= datetime('now', ?)
                """,
                (token, self._cutoff()),
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def watch_session(
        self, token: str, callback: Callable[[User | None], None]
    ) -> Subscription:
        with self._lock:
            stream = self._sessions.get(token)
            if stream is None:
                stream = ValueStream(self.user_for_token(token))
                if stream.value is not None:
                    self._sessions[token] = stream
        return stream.subscribe(callback)
