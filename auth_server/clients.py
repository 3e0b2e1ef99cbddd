"""
Registry of OAuth clients. Static for the process lifetime; loaded once at startup.
"""
import hmac
import logging
from collections.abc import Iterable

from auth_server.models import Client

logger = logging.getLogger(__name__)


def safe_compare(a: str, b: str) -> bool:
    """Constant-time string comparison; unequal lengths simply fail."""
    return hmac.compare_digest(str(a).encode("utf-8"), str(b).encode("utf-8"))


class ClientRegistry:
    def __init__(self, clients: Iterable[Client]):
        self._clients = {c.client_id: c for c in clients}

    def find_client_by_id(self, client_id: str | None) -> Client | None:
        if not client_id:
            return None
        return self._clients.get(client_id)

    def validate_client_credentials(self, client_id: str | None, client_secret: str | None) -> Client | None:
        """Return the client if the secret matches, else None."""
        client = self.find_client_by_id(client_id)
        if client is None or not client.client_secret or client_secret is None:
            return None
        if not safe_compare(client.client_secret, client_secret):
            logger.debug("Client secret mismatch for client_id=%s", client_id)
            return None
        return client

    @staticmethod
    def is_redirect_uri_allowed(client: Client, uri: str | None) -> bool:
        """Exact string match against the registered redirect URIs."""
        if not uri:
            return False
        return uri in client.redirect_uris
