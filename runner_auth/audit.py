"""
Audit logging. Security-relevant events only; no tokens, passwords, or request bodies.
GET /audit lists recent events for administrators.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from runner_auth.database import get_db
from runner_auth.dependencies import require_admin
from runner_auth.models import AuditLog

EVENT_LOGIN_FAIL = "login_fail"
EVENT_CODE_ISSUED = "code_issued"
EVENT_TOKEN_ISSUED = "token_issued"
EVENT_TOKEN_REFRESHED = "token_refreshed"
EVENT_TOKEN_REUSE = "token_reuse"
EVENT_LOGOUT = "logout"
EVENT_USER_CREATED = "user_created"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"

_MAX_LIMIT = 500


def get_client_ip(request: Request | None) -> str | None:
    if request is None or request.client is None:
        return None
    return request.client.host


def log_audit(
    db: Session,
    event_type: str,
    *,
    client_id: str | None = None,
    username: str | None = None,
    ip: str | None = None,
    outcome: str = OUTCOME_SUCCESS,
) -> None:
    """Append one audit record."""
    db.add(
        AuditLog(
            event_type=event_type,
            client_id=client_id,
            username=username,
            ip=ip,
            outcome=outcome,
        )
    )
    db.commit()


router = APIRouter(tags=["audit"])


@router.get("/audit", dependencies=[Depends(require_admin)])
def list_audit_logs(
    limit: int = 100,
    event_type: str | None = None,
    outcome: str | None = None,
    client_id: str | None = None,
    db: Session = Depends(get_db),
):
    """Recent audit events, most recent first, with optional filters."""
    q = db.query(AuditLog).order_by(AuditLog.id.desc())
    if event_type:
        q = q.filter(AuditLog.event_type == event_type)
    if outcome:
        q = q.filter(AuditLog.outcome == outcome)
    if client_id:
        q = q.filter(AuditLog.client_id == client_id)
    rows = q.limit(min(max(1, limit), _MAX_LIMIT)).all()
    return [
        {
            "createdAt": r.created_at.isoformat() if r.created_at else None,
            "eventType": r.event_type,
            "clientId": r.client_id,
            "username": r.username,
            "ip": r.ip,
            "outcome": r.outcome,
        }
        for r in rows
    ]
