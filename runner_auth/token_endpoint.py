"""
Token endpoints. POST /auth/token exchanges an authorization code for an
access/refresh pair; POST /auth/refresh rotates the pair, with the refresh
token presented as the bearer credential.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from runner_auth import rate_limit
from runner_auth.audit import (
    EVENT_TOKEN_ISSUED,
    EVENT_TOKEN_REFRESHED,
    EVENT_TOKEN_REUSE,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
    get_client_ip,
    log_audit,
)
from runner_auth.config import RATE_LIMIT_TOKEN_PER_MINUTE
from runner_auth.database import get_db
from runner_auth.dependencies import get_auth_service, get_bearer_token, server_mode_only
from runner_auth.errors import AuthError, TokenReuse
from runner_auth.schemas import TokenRequest
from runner_auth.service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", dependencies=[Depends(server_mode_only)])


@router.post("/token")
def token(
    body: TokenRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db),
):
    """403 for an unknown, expired, already used or foreign code, or bad client credentials."""
    rate_limit.enforce(request, "token", RATE_LIMIT_TOKEN_PER_MINUTE)
    try:
        pair = service.exchange(body.code, body.client_id, body.client_secret)
    except AuthError as e:
        log_audit(
            db,
            EVENT_TOKEN_ISSUED,
            client_id=body.client_id,
            username=e.username,
            ip=get_client_ip(request),
            outcome=OUTCOME_FAIL,
        )
        raise e.to_http() from e

    log_audit(
        db,
        EVENT_TOKEN_ISSUED,
        client_id=pair.client_id,
        username=pair.username,
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    return pair.as_response()


@router.post("/refresh")
def refresh(
    request: Request,
    refresh_token: str = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db),
):
    """401 for an invalid refresh token, or one already superseded by a rotation."""
    try:
        pair = service.refresh(refresh_token)
    except TokenReuse as e:
        log_audit(
            db,
            EVENT_TOKEN_REUSE,
            client_id=e.client_id,
            username=e.username,
            ip=get_client_ip(request),
            outcome=OUTCOME_FAIL,
        )
        raise e.to_http() from e
    except AuthError as e:
        raise e.to_http() from e

    log_audit(
        db,
        EVENT_TOKEN_REFRESHED,
        client_id=pair.client_id,
        username=pair.username,
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    return pair.as_response()
