"""
Signed access and refresh tokens (RS256 JWTs).

The codec only answers "is this signature valid and unexpired, and what does it
claim". Whether a token is still the current one for its (user, client) is the
token repository's call.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from runner_auth import keys
from runner_auth.config import ACCESS_TOKEN_EXPIRES, ISSUER, REFRESH_TOKEN_EXPIRES
from runner_auth.errors import InvalidToken

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"
TOKEN_KINDS = (ACCESS, REFRESH)

_ALGORITHM = "RS256"


@dataclass(frozen=True)
class TokenClaims:
    username: str
    client_id: str
    kind: str
    issued_at: int
    expires_at: int
    jti: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    username: str
    client_id: str

    def as_response(self) -> dict:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


class TokenCodec:
    def __init__(
        self,
        private_key,
        kid: str,
        *,
        issuer: str = ISSUER,
        access_expires: int = ACCESS_TOKEN_EXPIRES,
        refresh_expires: int = REFRESH_TOKEN_EXPIRES,
        public_key_for_kid: Callable[[str | None], object | None] | None = None,
    ):
        self._private_key = private_key
        self._kid = kid
        self._issuer = issuer
        self._lifetimes = {ACCESS: access_expires, REFRESH: refresh_expires}
        self._public_key_for_kid = public_key_for_kid

    @classmethod
    def from_keys(cls, **kwargs) -> "TokenCodec":
        """Codec signing with the process key set (current key, previous key still verifiable)."""
        private_key, kid = keys.get_signing_key()
        return cls(private_key, kid, public_key_for_kid=keys.get_public_key_for_kid, **kwargs)

    def _issue(self, username: str, client_id: str, kind: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "iss": self._issuer,
            "sub": username,
            "client_id": client_id,
            "kind": kind,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._lifetimes[kind])).timestamp()),
            # Two tokens minted in the same second must still differ
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self._private_key, algorithm=_ALGORITHM, headers={"kid": self._kid, "typ": "JWT"})

    def issue_access_token(self, username: str, client_id: str) -> str:
        return self._issue(username, client_id, ACCESS)

    def issue_refresh_token(self, username: str, client_id: str) -> str:
        return self._issue(username, client_id, REFRESH)

    def issue_pair(self, username: str, client_id: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(username, client_id),
            refresh_token=self.issue_refresh_token(username, client_id),
            username=username,
            client_id=client_id,
        )

    def _public_key(self, kid: str | None):
        if kid == self._kid:
            return self._private_key.public_key()
        if self._public_key_for_kid is not None:
            return self._public_key_for_kid(kid)
        return None

    def verify(self, token: str, kind: str | None = None) -> TokenClaims:
        """
        Check signature, issuer and expiry; when `kind` is given, also the token kind.
        Returns the claims or raises InvalidToken. Knows nothing about revocation.
        """
        if not token:
            raise InvalidToken()
        try:
            public_key = self._public_key(jwt.get_unverified_header(token).get("kid"))
            if public_key is None:
                raise InvalidToken()
            payload = jwt.decode(
                token,
                public_key,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "iss", "sub", "jti"]},
            )
        except jwt.InvalidTokenError as e:
            logger.debug("Token rejected: %s", e)
            raise InvalidToken() from e

        token_kind = payload.get("kind")
        client_id = payload.get("client_id")
        if token_kind not in TOKEN_KINDS or not client_id:
            raise InvalidToken()
        if kind is not None and token_kind != kind:
            logger.debug("Token kind %s presented where %s expected", token_kind, kind)
            raise InvalidToken(username=payload["sub"], client_id=client_id)
        return TokenClaims(
            username=payload["sub"],
            client_id=client_id,
            kind=token_kind,
            issued_at=payload["iat"],
            expires_at=payload["exp"],
            jti=payload["jti"],
        )
