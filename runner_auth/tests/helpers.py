"""Shared fixtures data for the HTTP tests."""
from runner_auth.credentials import hash_password
from runner_auth.database import SessionLocal, init_db
from runner_auth.models import User
from runner_auth.seed import ensure_client

CLIENT_ID = "someclientID"
CONFIDENTIAL_CLIENT_ID = "confidential-client"
CONFIDENTIAL_SECRET = "someclientSecret"
OTHER_CLIENT_ID = "other-client"


def ensure_user(db, username: str, password: str, *, is_admin: bool = False, is_active: bool = True) -> User:
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        user = User(
            username=username,
            password_hash=hash_password(password),
            display_name=username.title(),
            is_admin=is_admin,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
    return user


def seed_basics() -> None:
    init_db()
    db = SessionLocal()
    try:
        ensure_client(db, CLIENT_ID)
        ensure_client(db, OTHER_CLIENT_ID)
        ensure_client(db, CONFIDENTIAL_CLIENT_ID, CONFIDENTIAL_SECRET)
        ensure_user(db, "testUsername", "87654321")
        ensure_user(db, "adminUser", "adminpass", is_admin=True)
        ensure_user(db, "sleepyUser", "sleepypass", is_active=False)
    finally:
        db.close()


def login(client, username: str, password: str, client_id: str = CLIENT_ID, client_secret: str | None = None) -> dict:
    """authorize + exchange; returns {"accessToken", "refreshToken"}."""
    r = client.post("/auth/authorize", json={"username": username, "password": password, "clientId": client_id})
    assert r.status_code == 200, r.text
    body = {"clientId": client_id, "code": r.json()["code"]}
    if client_secret is not None:
        body["clientSecret"] = client_secret
    r = client.post("/auth/token", json=body)
    assert r.status_code == 200, r.text
    return r.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def error_of(response) -> str | None:
    return (response.json().get("detail") or {}).get("error")
