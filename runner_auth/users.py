"""
User endpoints. POST /user registers a user (administrators only);
GET /user/me returns the identity behind the bearer access token.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from runner_auth.audit import EVENT_USER_CREATED, OUTCOME_SUCCESS, get_client_ip, log_audit
from runner_auth.credentials import hash_password
from runner_auth.database import get_db
from runner_auth.dependencies import require_admin, require_identity, server_mode_only
from runner_auth.models import User
from runner_auth.schemas import RegisterUserRequest
from runner_auth.service import Identity

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/user", dependencies=[Depends(server_mode_only)])


def _conflict(username: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"error": "username_taken", "error_description": f"Username {username} already exists."},
    )


@router.post("")
def create_user(
    body: RegisterUserRequest,
    request: Request,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if db.query(User).filter(User.username == body.username).first() is not None:
        raise _conflict(body.username)
    user = User(
        username=body.username,
        password_hash=hash_password(body.password),
        display_name=body.display_name,
        is_admin=body.is_admin,
        is_active=body.is_active,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict(body.username)
    logger.info("User %s created by %s", user.username, admin.username)
    log_audit(
        db,
        EVENT_USER_CREATED,
        client_id=admin.client_id,
        username=admin.username,
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    return {
        "displayName": body.display_name,
        "username": body.username,
        "isAdmin": body.is_admin,
        "isActive": body.is_active,
        "tokens": [],
    }


@router.get("/me")
def me(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == identity.username).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "error_description": "User not found"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {
        "username": user.username,
        "clientId": identity.client_id,
        "displayName": user.display_name,
        "isAdmin": user.is_admin,
    }
