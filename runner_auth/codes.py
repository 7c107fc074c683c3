"""
Authorization code storage. Codes are opaque, short-lived and single-use.

Expired codes are dropped when a consume hits them and swept in bulk on every
issue; there is no background task.
"""
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from sqlalchemy import delete
from sqlalchemy.orm import Session

from runner_auth.config import CODE_TTL_SECONDS
from runner_auth.errors import InvalidCode
from runner_auth.models import AuthorizationCode

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def new_code() -> str:
    return secrets.token_urlsafe(32)


class AuthorizationCodeStore(Protocol):
    def issue(self, username: str, client_id: str) -> str:
        """Store a fresh code for (username, client_id) and return it."""

    def consume(self, code: str, client_id: str) -> str:
        """
        Atomically remove the code and return its username.
        Raises InvalidCode if absent, expired or issued to another client.
        """

    def purge_expired(self) -> int:
        """Delete every expired code. Returns how many were removed."""


class SqlAuthorizationCodeStore:
    def __init__(self, db: Session, ttl_seconds: int = CODE_TTL_SECONDS, clock: Clock = utc_now):
        self._db = db
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def issue(self, username: str, client_id: str) -> str:
        self.purge_expired()
        code = new_code()
        self._db.add(
            AuthorizationCode(
                code=code,
                username=username,
                client_id=client_id,
                expires_at=self._clock() + self._ttl,
            )
        )
        self._db.commit()
        return code

    def consume(self, code: str, client_id: str) -> str:
        entry = self._db.query(AuthorizationCode).filter(AuthorizationCode.code == code).first()
        if entry is None:
            raise InvalidCode(client_id=client_id)
        entry_id, username = entry.id, entry.username
        if _as_utc(entry.expires_at) <= self._clock():
            self._db.execute(delete(AuthorizationCode).where(AuthorizationCode.id == entry_id))
            self._db.commit()
            raise InvalidCode(username=username, client_id=client_id)
        if entry.client_id != client_id:
            raise InvalidCode(client_id=client_id)
        # Conditional delete: of two racing consumers only one removes the row
        result = self._db.execute(delete(AuthorizationCode).where(AuthorizationCode.id == entry_id))
        self._db.commit()
        if result.rowcount != 1:
            logger.info("Authorization code for client_id=%s consumed concurrently", client_id)
            raise InvalidCode(username=username, client_id=client_id)
        return username

    def purge_expired(self) -> int:
        result = self._db.execute(delete(AuthorizationCode).where(AuthorizationCode.expires_at <= self._clock()))
        self._db.commit()
        if result.rowcount:
            logger.debug("Purged %s expired authorization codes", result.rowcount)
        return result.rowcount


@dataclass(frozen=True)
class PendingCode:
    username: str
    client_id: str
    expires_at: datetime


class InMemoryAuthorizationCodeStore:
    """Process-local store; a single lock makes consume check-and-delete atomic."""

    def __init__(self, ttl_seconds: int = CODE_TTL_SECONDS, clock: Clock = utc_now):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._pending: dict[str, PendingCode] = {}
        self._lock = threading.Lock()

    def issue(self, username: str, client_id: str) -> str:
        self.purge_expired()
        code = new_code()
        with self._lock:
            self._pending[code] = PendingCode(username, client_id, self._clock() + self._ttl)
        return code

    def consume(self, code: str, client_id: str) -> str:
        with self._lock:
            entry = self._pending.get(code)
            if entry is None:
                raise InvalidCode(client_id=client_id)
            if entry.expires_at <= self._clock():
                del self._pending[code]
                raise InvalidCode(username=entry.username, client_id=client_id)
            if entry.client_id != client_id:
                raise InvalidCode(client_id=client_id)
            del self._pending[code]
            return entry.username

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [c for c, entry in self._pending.items() if entry.expires_at <= now]
            for c in expired:
                del self._pending[c]
        return len(expired)

    def __len__(self) -> int:
        return len(self._pending)
