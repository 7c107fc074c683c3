"""
Password hashing and username/password verification.
"""
import logging
from typing import Callable

import bcrypt
from sqlalchemy.orm import Session

from runner_auth.errors import InvalidPassword, UserInactive, UserNotFound
from runner_auth.models import User

logger = logging.getLogger(__name__)


def _encode(password: str) -> bytes:
    # Bcrypt has a 72-byte limit
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Checked when the username is unknown so both failures cost one bcrypt round
_DUMMY_HASH = hash_password("runner-auth-dummy-password")


class CredentialVerifier:
    """Validates a username/password pair against stored bcrypt hashes."""

    def __init__(self, find_user: Callable[[str], User | None]):
        self._find_user = find_user

    @classmethod
    def from_session(cls, db: Session) -> "CredentialVerifier":
        return cls(lambda username: db.query(User).filter(User.username == username).first())

    def verify(self, username: str, password: str) -> User:
        user = self._find_user(username)
        if user is None:
            verify_password(password, _DUMMY_HASH)
            raise UserNotFound(username=username)
        if not verify_password(password, user.password_hash):
            raise InvalidPassword(username=username)
        if not user.is_active:
            logger.info("Login refused for inactive user=%s", username)
            raise UserInactive(username=username)
        return user
