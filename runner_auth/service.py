"""
AuthService: authorize -> exchange -> (refresh)* -> logout, plus the request
authentication used by every protected route.

Per (user, client) the session moves NoSession -> CodeIssued -> Authenticated
-> Authenticated (rotated) ... -> Revoked. Token validity is always two checks:
the codec (signature, expiry, kind) and the repository (still the stored value).
"""
import logging
from dataclasses import dataclass

from runner_auth.client_auth import ClientRegistry
from runner_auth.codes import AuthorizationCodeStore
from runner_auth.credentials import CredentialVerifier
from runner_auth.errors import AuthError, InvalidToken, TokenReuse, Unauthorized
from runner_auth.token_store import TokenRepository
from runner_auth.tokens import ACCESS, REFRESH, TokenClaims, TokenCodec, TokenPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    username: str
    client_id: str


class AuthService:
    def __init__(
        self,
        *,
        clients: ClientRegistry,
        credentials: CredentialVerifier,
        codes: AuthorizationCodeStore,
        codec: TokenCodec,
        tokens: TokenRepository,
    ):
        self._clients = clients
        self._credentials = credentials
        self._codes = codes
        self._codec = codec
        self._tokens = tokens

    def authorize(self, username: str, password: str, client_id: str) -> str:
        """Check client and credentials; return a single-use authorization code."""
        self._clients.validate(client_id)
        try:
            user = self._credentials.verify(username, password)
        except AuthError as e:
            e.client_id = client_id
            raise
        code = self._codes.issue(user.username, client_id)
        logger.info("Authorization code issued for user=%s client_id=%s", user.username, client_id)
        return code

    def exchange(self, code: str, client_id: str, client_secret: str | None = None) -> TokenPair:
        """Trade a code for a fresh access/refresh pair, replacing any previous pair for the client."""
        self._clients.validate(client_id, client_secret, authenticate=True)
        username = self._codes.consume(code, client_id)
        pair = self._codec.issue_pair(username, client_id)
        self._tokens.upsert(username, client_id, pair.access_token, pair.refresh_token)
        logger.info("Tokens issued for user=%s client_id=%s", username, client_id)
        return pair

    def refresh(self, refresh_token: str) -> TokenPair:
        """
        Rotate both tokens. A refresh token that verifies but is no longer the stored
        one has already been used (or revoked) and is rejected as TokenReuse.
        """
        claims = self._codec.verify(refresh_token, REFRESH)
        if not self._tokens.verify(claims.username, claims.client_id, refresh_token, REFRESH):
            logger.warning(
                "Superseded refresh token presented for user=%s client_id=%s", claims.username, claims.client_id
            )
            raise TokenReuse(username=claims.username, client_id=claims.client_id)
        pair = self._codec.issue_pair(claims.username, claims.client_id)
        if not self._tokens.rotate(
            claims.username, claims.client_id, refresh_token, pair.access_token, pair.refresh_token
        ):
            # Lost the race against a concurrent refresh, or logged out meanwhile
            logger.warning("Concurrent refresh lost for user=%s client_id=%s", claims.username, claims.client_id)
            raise TokenReuse(username=claims.username, client_id=claims.client_id)
        logger.info("Tokens rotated for user=%s client_id=%s", claims.username, claims.client_id)
        return pair

    def logout(self, access_token: str) -> Identity:
        """Revoke the session the access token belongs to."""
        claims = self._check_access_token(access_token, InvalidToken)
        self._tokens.remove(claims.username, claims.client_id)
        logger.info("Session revoked for user=%s client_id=%s", claims.username, claims.client_id)
        return Identity(claims.username, claims.client_id)

    def authenticate_request(self, access_token: str) -> Identity:
        """Identity behind a bearer access token; Unauthorized unless it is the current one."""
        claims = self._check_access_token(access_token, Unauthorized)
        return Identity(claims.username, claims.client_id)

    def _check_access_token(self, token: str, error: type[AuthError]) -> TokenClaims:
        try:
            claims = self._codec.verify(token, ACCESS)
        except InvalidToken as e:
            raise error(username=e.username, client_id=e.client_id) from e
        if not self._tokens.verify(claims.username, claims.client_id, token, ACCESS):
            raise error(username=claims.username, client_id=claims.client_id)
        return claims
