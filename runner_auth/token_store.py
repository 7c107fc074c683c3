"""
Token repository: the current (access, refresh) pair per (user, client).

A token is only honoured while it is the exact value stored here, which is what
lets rotation and logout revoke JWTs that would otherwise verify offline.
"""
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from runner_auth.errors import UserNotFound
from runner_auth.models import TokenRecord, User
from runner_auth.tokens import ACCESS, REFRESH

logger = logging.getLogger(__name__)


def _same_token(stored: str | None, presented: str) -> bool:
    if stored is None:
        return False
    return secrets.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


class TokenRepository(Protocol):
    def upsert(self, username: str, client_id: str, access_token: str, refresh_token: str) -> None:
        """Create or fully replace the pair for (username, client_id)."""

    def verify(self, username: str, client_id: str, token: str, kind: str) -> bool:
        """True only if `token` equals the stored value of `kind` for the pair."""

    def rotate(
        self,
        username: str,
        client_id: str,
        expected_refresh_token: str,
        access_token: str,
        refresh_token: str,
    ) -> bool:
        """Replace the pair only if the stored refresh token still equals `expected_refresh_token`."""

    def remove(self, username: str, client_id: str) -> None:
        """Delete the pair. Removing an absent pair is not an error."""


class SqlTokenRepository:
    """Token records embedded in the user aggregate (User.tokens keyed by client_id)."""

    def __init__(self, db: Session):
        self._db = db

    def _user_id(self, username: str) -> int | None:
        return self._db.execute(select(User.id).where(User.username == username)).scalar_one_or_none()

    def upsert(self, username: str, client_id: str, access_token: str, refresh_token: str) -> None:
        user = self._db.query(User).filter(User.username == username).first()
        if user is None:
            raise UserNotFound(username=username, client_id=client_id)
        record = user.tokens.get(client_id)
        if record is None:
            user.tokens[client_id] = TokenRecord(
                client_id=client_id, access_token=access_token, refresh_token=refresh_token
            )
        else:
            record.access_token = access_token
            record.refresh_token = refresh_token
        try:
            self._db.commit()
        except IntegrityError:
            # A concurrent exchange inserted the record first; overwrite it
            self._db.rollback()
            self._db.execute(
                update(TokenRecord)
                .where(TokenRecord.user_id == user.id, TokenRecord.client_id == client_id)
                .values(access_token=access_token, refresh_token=refresh_token, updated_at=datetime.now(timezone.utc))
            )
            self._db.commit()

    def verify(self, username: str, client_id: str, token: str, kind: str) -> bool:
        if kind not in (ACCESS, REFRESH):
            return False
        column = TokenRecord.access_token if kind == ACCESS else TokenRecord.refresh_token
        stored = self._db.execute(
            select(column)
            .join(User, TokenRecord.user_id == User.id)
            .where(User.username == username, TokenRecord.client_id == client_id)
        ).scalar_one_or_none()
        return _same_token(stored, token)

    def rotate(
        self,
        username: str,
        client_id: str,
        expected_refresh_token: str,
        access_token: str,
        refresh_token: str,
    ) -> bool:
        user_id = self._user_id(username)
        if user_id is None:
            return False
        result = self._db.execute(
            update(TokenRecord)
            .where(
                TokenRecord.user_id == user_id,
                TokenRecord.client_id == client_id,
                TokenRecord.refresh_token == expected_refresh_token,
            )
            .values(access_token=access_token, refresh_token=refresh_token, updated_at=datetime.now(timezone.utc))
        )
        self._db.commit()
        return result.rowcount == 1

    def remove(self, username: str, client_id: str) -> None:
        user_id = self._user_id(username)
        if user_id is None:
            return
        self._db.execute(
            delete(TokenRecord).where(TokenRecord.user_id == user_id, TokenRecord.client_id == client_id)
        )
        self._db.commit()


@dataclass(frozen=True)
class StoredPair:
    access_token: str
    refresh_token: str

    def get(self, kind: str) -> str:
        return self.access_token if kind == ACCESS else self.refresh_token


class InMemoryTokenRepository:
    """Process-local repository; one lock serialises every write per store."""

    def __init__(self):
        self._pairs: dict[tuple[str, str], StoredPair] = {}
        self._lock = threading.Lock()

    def upsert(self, username: str, client_id: str, access_token: str, refresh_token: str) -> None:
        with self._lock:
            self._pairs[(username, client_id)] = StoredPair(access_token, refresh_token)

    def verify(self, username: str, client_id: str, token: str, kind: str) -> bool:
        if kind not in (ACCESS, REFRESH):
            return False
        pair = self._pairs.get((username, client_id))
        return _same_token(pair.get(kind) if pair else None, token)

    def rotate(
        self,
        username: str,
        client_id: str,
        expected_refresh_token: str,
        access_token: str,
        refresh_token: str,
    ) -> bool:
        key = (username, client_id)
        with self._lock:
            pair = self._pairs.get(key)
            if pair is None or not _same_token(pair.refresh_token, expected_refresh_token):
                return False
            self._pairs[key] = StoredPair(access_token, refresh_token)
            return True

    def remove(self, username: str, client_id: str) -> None:
        with self._lock:
            self._pairs.pop((username, client_id), None)

    def get(self, username: str, client_id: str) -> StoredPair | None:
        return self._pairs.get((username, client_id))
