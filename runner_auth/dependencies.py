"""
FastAPI dependencies: the AuthService wired to the request's DB session, bearer
token extraction, and the gates protected routes put in front of themselves.
"""
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from runner_auth.client_auth import ClientRegistry
from runner_auth.codes import SqlAuthorizationCodeStore
from runner_auth.config import MODE
from runner_auth.credentials import CredentialVerifier
from runner_auth.database import get_db
from runner_auth.errors import Unauthorized
from runner_auth.models import User
from runner_auth.service import AuthService, Identity
from runner_auth.token_store import SqlTokenRepository
from runner_auth.tokens import TokenCodec

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_auth_service(db: Annotated[Session, Depends(get_db)]) -> AuthService:
    return AuthService(
        clients=ClientRegistry.from_session(db),
        credentials=CredentialVerifier.from_session(db),
        codes=SqlAuthorizationCodeStore(db),
        codec=TokenCodec.from_keys(),
        tokens=SqlTokenRepository(db),
    )


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Bearer token from the Authorization header, or "" when absent (rejected downstream)."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        return ""
    return credentials.credentials


def require_identity(
    token: Annotated[str, Depends(get_bearer_token)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> Identity:
    """Gate for protected routes: the caller's identity, or 401."""
    try:
        return service.authenticate_request(token)
    except Unauthorized as e:
        raise e.to_http() from e


def require_admin(
    identity: Annotated[Identity, Depends(require_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> Identity:
    user = db.query(User).filter(User.username == identity.username).first()
    if user is None or not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "error_description": "Admin access required."},
        )
    return identity


def server_mode_only() -> None:
    """Auth and user routes exist only when running as a multi-user server."""
    if MODE != "server":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "desktop_mode", "error_description": "Not Allowed while in Desktop Mode."},
        )
