"""
Authorization flow: login -> consent -> authorization code.

Every step can be restarted from GET /authorize with the original query string, so the
browser only ever carries that query string (and the session cookie) between steps.
This module decides what happens next; authorize.py turns the result into HTTP.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from auth_server.clients import ClientRegistry
from auth_server.models import AuthorizationCode, Client, Session, User
from auth_server.scopes import format_scope, parse_scope, scopes_for_request
from auth_server.seed import UserDirectory
from auth_server.stores import AuthorizationCodeRegistry, SessionRegistry

logger = logging.getLogger(__name__)

LOGIN_NOTICE = "Successfully signed in!"
AUTHORIZE_PATH = "/authorize"


class FlowState(str, Enum):
    AWAITING_LOGIN = "awaiting_login"
    AWAITING_CONSENT = "awaiting_consent"
    # Browser goes back to GET /authorize (after login, or when the session is gone)
    RESUME = "resume"
    CODE_ISSUED = "code_issued"
    DENIED = "denied"


class AuthorizationError(Exception):
    """Request cannot be processed and must not be redirected to the client."""

    def __init__(self, error: str, description: str, status_code: int = 400):
        super().__init__(description)
        self.error = error
        self.description = description
        self.status_code = status_code


@dataclass
class FlowStep:
    state: FlowState
    client: Client | None = None
    user: User | None = None
    scopes: list[str] = field(default_factory=list)
    original_query: str = ""
    # Hidden fields for the consent form
    fields: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    status_code: int = 200
    location: str | None = None
    session: Session | None = None
    code: AuthorizationCode | None = None
    # state parameter of the client request, echoed on redirects
    client_state: str | None = None
    just_logged_in: bool = False
    show_code: bool = False


def append_query(uri: str, params: dict[str, str | None]) -> str:
    """Add params to uri, keeping its existing query. None values are left out."""
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((k, v) for k, v in params.items() if v is not None)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def authorize_location(original_query: str | None) -> str:
    return f"{AUTHORIZE_PATH}?{original_query}" if original_query else AUTHORIZE_PATH


def strip_notice(query_string: str) -> str:
    """Original query without the one-shot 'notice' parameter added after login."""
    pairs = parse_qsl(query_string or "", keep_blank_values=True)
    return urlencode([(k, v) for k, v in pairs if k != "notice"])


class AuthorizationFlow:
    def __init__(
        self,
        clients: ClientRegistry,
        users: UserDirectory,
        sessions: SessionRegistry,
        codes: AuthorizationCodeRegistry,
    ):
        self.clients = clients
        self.users = users
        self.sessions = sessions
        self.codes = codes

    def _client_for_query(self, original_query: str | None) -> Client | None:
        params = dict(parse_qsl(original_query or ""))
        return self.clients.find_client_by_id(params.get("client_id"))

    def start(self, query_string: str, sid: str | None) -> FlowStep:
        """GET /authorize: validate the request, then ask for login or consent."""
        params = dict(parse_qsl(query_string or "", keep_blank_values=True))
        if params.get("response_type") != "code":
            raise AuthorizationError("unsupported_response_type", "Only response_type=code is supported.")

        client = self.clients.find_client_by_id(params.get("client_id"))
        if client is None:
            raise AuthorizationError("invalid_client", "Unknown client_id")

        redirect_uri = params.get("redirect_uri")
        if not self.clients.is_redirect_uri_allowed(client, redirect_uri):
            raise AuthorizationError("invalid_request", "redirect_uri is not registered for this client.")

        scopes = scopes_for_request(params.get("scope"), client)
        original_query = strip_notice(query_string)

        session = self.sessions.get(sid)
        if session is None:
            return FlowStep(FlowState.AWAITING_LOGIN, client=client, original_query=original_query)

        user = self.users.find_user_by_id(session.user_id)
        if user is None:
            self.sessions.destroy(sid)
            return FlowStep(
                FlowState.AWAITING_LOGIN,
                client=client,
                original_query=original_query,
                error="Session expired. Please sign in again.",
            )

        session = self.sessions.touch(sid) or session
        fields = {
            "original_query": original_query,
            "client_id": client.client_id,
            "redirect_uri": redirect_uri,
            "scope": format_scope(scopes),
            "state": params.get("state") or "",
            "code_challenge": params.get("code_challenge") or "",
            "code_challenge_method": params.get("code_challenge_method") or "",
            "response_type": "code",
            "show_code": "true" if params.get("show_code") == "true" else "",
        }
        return FlowStep(
            FlowState.AWAITING_CONSENT,
            client=client,
            user=user,
            scopes=scopes,
            original_query=original_query,
            fields=fields,
            session=session,
            just_logged_in=bool(params.get("notice")),
        )

    def login(self, username: str | None, password: str | None, original_query: str | None) -> FlowStep:
        """POST /login: on success a new session and a redirect back to /authorize."""
        original_query = original_query or ""
        client = self._client_for_query(original_query)
        if not username or not password:
            return FlowStep(
                FlowState.AWAITING_LOGIN,
                client=client,
                original_query=original_query,
                error="Username and password are required.",
                status_code=400,
            )

        user = self.users.find_user_by_username(username)
        if user is None or not self.users.verify_password(user, password):
            # Same message whether or not the username exists
            return FlowStep(
                FlowState.AWAITING_LOGIN,
                client=client,
                original_query=original_query,
                error="Invalid credentials. Try again.",
                status_code=401,
            )

        session = self.sessions.create(user.id)
        separator = "&" if original_query else ""
        location = f"{AUTHORIZE_PATH}?{original_query}{separator}{urlencode({'notice': LOGIN_NOTICE})}"
        return FlowStep(
            FlowState.RESUME,
            client=client,
            user=user,
            original_query=original_query,
            session=session,
            location=location,
        )

    def consent(self, form: dict[str, str | None], sid: str | None) -> FlowStep:
        """POST /consent: approve issues a code, anything else is a denial."""
        original_query = form.get("original_query") or ""
        session = self.sessions.get(sid)
        if session is None:
            self.sessions.destroy(sid)
            return FlowStep(FlowState.RESUME, original_query=original_query, location=authorize_location(original_query))

        client = self.clients.find_client_by_id(form.get("client_id"))
        redirect_uri = form.get("redirect_uri")
        if client is None or not self.clients.is_redirect_uri_allowed(client, redirect_uri):
            raise AuthorizationError("invalid_request", "Invalid client or redirect_uri.")

        user = self.users.find_user_by_id(session.user_id)
        if user is None:
            self.sessions.destroy(sid)
            return FlowStep(FlowState.RESUME, original_query=original_query, location=authorize_location(original_query))

        session = self.sessions.touch(sid) or session
        state = form.get("state") or None

        if form.get("decision") != "approve":
            return FlowStep(
                FlowState.DENIED,
                client=client,
                user=user,
                session=session,
                original_query=original_query,
                client_state=state,
                location=append_query(redirect_uri, {"error": "access_denied", "state": state}),
            )

        scopes = parse_scope(form.get("scope")) or list(client.scopes)
        auth_code = self.codes.issue(
            client_id=client.client_id,
            redirect_uri=redirect_uri,
            scope=scopes,
            user_id=user.id,
            code_challenge=form.get("code_challenge") or None,
            code_challenge_method=form.get("code_challenge_method") or None,
        )
        logger.info("Authorization code issued for client_id=%s user=%s", client.client_id, user.id)
        return FlowStep(
            FlowState.CODE_ISSUED,
            client=client,
            user=user,
            scopes=scopes,
            session=session,
            original_query=original_query,
            code=auth_code,
            client_state=state,
            location=append_query(redirect_uri, {"code": auth_code.code, "state": state}),
            show_code=form.get("show_code") == "true",
        )

    def logout(self, sid: str | None, original_query: str | None) -> FlowStep:
        self.sessions.destroy(sid)
        return FlowStep(
            FlowState.RESUME,
            original_query=original_query or "",
            location=authorize_location(original_query),
        )
