"""
Authentication error taxonomy. Each error carries its HTTP status, a stable
error code and a fixed human-readable message; routes turn them into
HTTPException with the usual {"error", "error_description"} detail.
"""
from fastapi import HTTPException


class AuthError(Exception):
    status_code = 403
    error = "access_denied"
    message = "Access denied."

    def __init__(self, message: str | None = None, *, username: str | None = None, client_id: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)
        # Known identity at the point of failure, for the audit trail only
        self.username = username
        self.client_id = client_id

    def to_http(self) -> HTTPException:
        headers = {"WWW-Authenticate": "Bearer"} if self.status_code == 401 else None
        return HTTPException(
            status_code=self.status_code,
            detail={"error": self.error, "error_description": self.message},
            headers=headers,
        )


class InvalidClient(AuthError):
    error = "invalid_client"
    message = "Invalid clientId."


class UserNotFound(AuthError):
    error = "user_not_found"
    message = "Username is not found."


class InvalidPassword(AuthError):
    error = "invalid_password"
    message = "Invalid password."


class UserInactive(AuthError):
    error = "user_inactive"
    message = "User is not active."


class InvalidCode(AuthError):
    error = "invalid_code"
    message = "Invalid or expired authorization code."


class InvalidToken(AuthError):
    status_code = 401
    error = "invalid_token"
    message = "Invalid or expired token."


class TokenReuse(AuthError):
    status_code = 401
    error = "token_reuse"
    message = "Refresh token has already been used."


class Unauthorized(AuthError):
    status_code = 401
    error = "unauthorized"
    message = "Authentication required."
