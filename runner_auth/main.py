"""
Runner auth server: the authorization-code grant, token rotation and logout
that gate the code-execution and drive APIs.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from runner_auth.audit import router as audit_router
from runner_auth.authorize import router as authorize_router
from runner_auth.database import SessionLocal, init_db
from runner_auth.keys import get_signing_key
from runner_auth.logout import router as logout_router
from runner_auth.seed import seed_from_env
from runner_auth.token_endpoint import router as token_router
from runner_auth.users import router as users_router
from runner_auth.well_known import router as well_known_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, load signing key, seed admin/clients from env on startup."""
    init_db()
    get_signing_key()
    db = SessionLocal()
    try:
        seed_from_env(db)
    finally:
        db.close()
    yield


app = FastAPI(title="Runner Auth", version="1.0.0", lifespan=lifespan)
app.include_router(authorize_router, tags=["auth"])
app.include_router(token_router, tags=["auth"])
app.include_router(logout_router, tags=["auth"])
app.include_router(users_router, tags=["user"])
app.include_router(audit_router)
app.include_router(well_known_router, tags=["well-known"])


def _describe_validation_error(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part != "body"]
    field = loc[-1] if loc else "body"
    kind = error.get("type", "")
    if kind == "json_invalid":
        return "Request body is not valid JSON"
    if kind == "missing":
        return f'"{field}" is required'
    if kind == "string_too_short":
        min_length = (error.get("ctx") or {}).get("min_length", 1)
        if min_length <= 1:
            return f'"{field}" is not allowed to be empty'
        return f'"{field}" length must be at least {min_length} characters long'
    return f'"{field}" is invalid'


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed body fields: 400 naming the first offending field."""
    errors = exc.errors()
    message = _describe_validation_error(errors[0]) if errors else "Invalid request"
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"error": "invalid_request", "error_description": message}},
    )


@app.get("/health")
def health():
    return {"status": "ok", "service": "runner_auth"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "runner_auth.main:app",
        host="127.0.0.1",
        port=5000,
        reload=True,
    )
