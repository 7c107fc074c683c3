"""
Client registry: checks that a presented clientId (and, for confidential
clients at the token step, clientSecret) belongs to a registered client.
"""
import logging
from typing import Callable

from sqlalchemy.orm import Session

from runner_auth.credentials import verify_password
from runner_auth.errors import InvalidClient
from runner_auth.models import Client

logger = logging.getLogger(__name__)


class ClientRegistry:
    def __init__(self, find_client: Callable[[str], Client | None]):
        self._find_client = find_client

    @classmethod
    def from_session(cls, db: Session) -> "ClientRegistry":
        return cls(lambda client_id: db.query(Client).filter(Client.client_id == client_id).first())

    def validate(self, client_id: str, client_secret: str | None = None, *, authenticate: bool = False) -> Client:
        """
        Return the registered client or raise InvalidClient.
        Without `authenticate` only existence is checked (authorize step).
        With it, a confidential client must present its secret; public clients pass on existence.
        """
        client = self._find_client(client_id) if client_id else None
        if client is None:
            raise InvalidClient(client_id=client_id)
        if authenticate and client.is_confidential:
            if not client_secret or not verify_password(client_secret, client.client_secret_hash):
                logger.info("Client authentication failed for client_id=%s", client_id)
                raise InvalidClient(client_id=client_id)
        return client
