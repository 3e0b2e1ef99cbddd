"""
Sample users and OAuth clients for the lab.
The client secret can be overridden from env (OAUTH_LEARNING_CLIENT_SECRET).
"""
import logging
import os

from auth_server.models import Client, User

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "learning-client"
DEFAULT_REDIRECT_URI = "http://localhost:3000/callback"


def load_clients() -> list[Client]:
    """Registered clients (one confidential dev client)."""
    secret = os.environ.get("OAUTH_LEARNING_CLIENT_SECRET") or "learning-client-secret"
    clients = [
        Client(
            client_id=DEFAULT_CLIENT_ID,
            client_secret=secret,
            name="Local Learning Client",
            redirect_uris=frozenset([DEFAULT_REDIRECT_URI]),
            grants=frozenset(["client_credentials", "authorization_code", "refresh_token"]),
            scopes=("read:users", "read:products", "openid", "profile", "email"),
        )
    ]
    for c in clients:
        logger.info("Registered client: %s", c.client_id)
    return clients


def load_users() -> list[User]:
    return [
        User(id="user-1", username="alice", password="password123", name="Alice Johnson", email="alice@example.com"),
        User(id="user-2", username="bob", password="password123", name="Bob Singh", email="bob@example.com"),
    ]


class UserDirectory:
    """Lookup of resource owners by id or (case-insensitive) username."""

    def __init__(self, users: list[User]):
        self._by_id = {u.id: u for u in users}
        self._by_username = {u.username.lower(): u for u in users}

    def find_user_by_id(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        return self._by_id.get(str(user_id))

    def find_user_by_username(self, username: str | None) -> User | None:
        if not username:
            return None
        return self._by_username.get(str(username).lower())

    def verify_password(self, user: User, password: str) -> bool:
        # Plaintext equality; passwords are sample data only
        return user.password == password
