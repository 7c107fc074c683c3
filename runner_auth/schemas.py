"""Request bodies. Field names on the wire are camelCase."""

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AuthorizeRequest(_Body):
    """Credentials presented by a client application to obtain an authorization code."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    client_id: str = Field(alias="clientId", min_length=1)


class TokenRequest(_Body):
    """Authorization code exchange. Confidential clients also send their secret."""

    client_id: str = Field(alias="clientId", min_length=1)
    code: str = Field(min_length=1)
    client_secret: str | None = Field(default=None, alias="clientSecret")


class RegisterUserRequest(_Body):
    display_name: str = Field(alias="displayName", min_length=1)
    username: str = Field(min_length=3)
    password: str = Field(min_length=6)
    is_admin: bool = Field(default=False, alias="isAdmin")
    is_active: bool = Field(default=True, alias="isActive")
