"""
Seed the first administrator and registered clients from environment. No hardcoded credentials.
Optional: RUNNER_SEED_USER + RUNNER_SEED_PASSWORD, RUNNER_SEED_CLIENT_ID (+ RUNNER_SEED_CLIENT_SECRET).
"""
import logging
import os

from sqlalchemy.orm import Session

from runner_auth.config import DEFAULT_CLIENT_ID
from runner_auth.credentials import hash_password
from runner_auth.models import Client, User

logger = logging.getLogger(__name__)


def ensure_client(db: Session, client_id: str, client_secret: str | None = None) -> Client:
    """Register client_id if missing. A secret makes it a confidential client."""
    client = db.query(Client).filter(Client.client_id == client_id).first()
    if client is not None:
        logger.debug("Client already exists: %s", client_id)
        return client
    client = Client(client_id=client_id, client_secret_hash=hash_password(client_secret) if client_secret else None)
    db.add(client)
    db.commit()
    logger.info("Seeded client: %s (confidential=%s)", client_id, client.is_confidential)
    return client


def seed_from_env(db: Session) -> None:
    """Create the seed admin and seed client from env if set, plus the default public client."""
    seed_user = os.environ.get("RUNNER_SEED_USER")
    seed_password = os.environ.get("RUNNER_SEED_PASSWORD")
    if seed_user and seed_password:
        if db.query(User).filter(User.username == seed_user).first() is None:
            db.add(
                User(
                    username=seed_user,
                    password_hash=hash_password(seed_password),
                    display_name=seed_user,
                    is_admin=True,
                    is_active=True,
                )
            )
            db.commit()
            logger.info("Seeded admin user: %s", seed_user)
        else:
            logger.debug("User already exists: %s", seed_user)

    client_id = os.environ.get("RUNNER_SEED_CLIENT_ID", "").strip()
    if client_id:
        ensure_client(db, client_id, os.environ.get("RUNNER_SEED_CLIENT_SECRET") or None)

    if DEFAULT_CLIENT_ID:
        ensure_client(db, DEFAULT_CLIENT_ID)
