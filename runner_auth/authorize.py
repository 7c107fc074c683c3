"""
Authorization endpoint (POST /auth/authorize).
A client application submits the user's credentials and its clientId and gets
back a short-lived, single-use authorization code.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from runner_auth import rate_limit
from runner_auth.audit import (
    EVENT_CODE_ISSUED,
    EVENT_LOGIN_FAIL,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
    get_client_ip,
    log_audit,
)
from runner_auth.config import RATE_LIMIT_AUTHORIZE_PER_MINUTE
from runner_auth.database import get_db
from runner_auth.dependencies import get_auth_service, server_mode_only
from runner_auth.errors import AuthError
from runner_auth.schemas import AuthorizeRequest
from runner_auth.service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", dependencies=[Depends(server_mode_only)])


@router.post("/authorize")
def authorize(
    body: AuthorizeRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db),
):
    """
    403 for an unknown clientId, unknown username or wrong password, each with
    its own message.
    """
    rate_limit.enforce(request, "authorize", RATE_LIMIT_AUTHORIZE_PER_MINUTE)
    try:
        code = service.authorize(body.username, body.password, body.client_id)
    except AuthError as e:
        log_audit(
            db,
            EVENT_LOGIN_FAIL,
            client_id=body.client_id,
            username=None,
            ip=get_client_ip(request),
            outcome=OUTCOME_FAIL,
        )
        raise e.to_http() from e

    log_audit(
        db,
        EVENT_CODE_ISSUED,
        client_id=body.client_id,
        username=body.username,
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    return {"code": code}
