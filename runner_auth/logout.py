"""
Logout (DELETE /auth/logout). Deletes the caller's token record for its client,
so both tokens of the pair stop working even though their signatures stay valid.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from runner_auth.audit import EVENT_LOGOUT, OUTCOME_SUCCESS, get_client_ip, log_audit
from runner_auth.database import get_db
from runner_auth.dependencies import get_auth_service, get_bearer_token, server_mode_only
from runner_auth.errors import AuthError
from runner_auth.service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", dependencies=[Depends(server_mode_only)])


@router.delete("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    request: Request,
    access_token: str = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db),
):
    try:
        identity = service.logout(access_token)
    except AuthError as e:
        raise e.to_http() from e

    log_audit(
        db,
        EVENT_LOGOUT,
        client_id=identity.client_id,
        username=identity.username,
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
