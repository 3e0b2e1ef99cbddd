"""
Per-app container for the registries and the token codec.
Stored on app.state so tests can build an app around their own instances.
"""
from dataclasses import dataclass

from fastapi import Request

from auth_server.clients import ClientRegistry
from auth_server.flow import AuthorizationFlow
from auth_server.seed import UserDirectory, load_clients, load_users
from auth_server.stores import AuthorizationCodeRegistry, SessionRegistry
from auth_server.tokens import TokenCodec, build_token_codec


@dataclass
class AuthServices:
    clients: ClientRegistry
    users: UserDirectory
    sessions: SessionRegistry
    codes: AuthorizationCodeRegistry
    codec: TokenCodec

    @property
    def flow(self) -> AuthorizationFlow:
        return AuthorizationFlow(self.clients, self.users, self.sessions, self.codes)


def build_services() -> AuthServices:
    return AuthServices(
        clients=ClientRegistry(load_clients()),
        users=UserDirectory(load_users()),
        sessions=SessionRegistry(),
        codes=AuthorizationCodeRegistry(),
        codec=build_token_codec(),
    )


def get_services(request: Request) -> AuthServices:
    """Dependency: the services of the app handling this request."""
    return request.app.state.services
