"""
Client authentication for the token endpoint. RFC 6749 §2.3.1.
Credentials via Authorization: Basic base64(client_id:client_secret) or client_id + client_secret in form.
"""
import base64
import binascii
import logging

from fastapi import Depends, Form, Request

from auth_server.errors import oauth_error
from auth_server.models import Client
from auth_server.services import AuthServices, get_services

logger = logging.getLogger(__name__)


def _parse_basic(header_value: str) -> tuple[str, str] | None:
    """Parse 'Basic <base64(client_id:client_secret)>'. Returns (client_id, client_secret) or None."""
    if not header_value or not header_value.strip().lower().startswith("basic "):
        return None
    try:
        encoded = header_value.strip()[6:].strip()
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if ":" not in decoded:
        return None
    client_id, _, client_secret = decoded.partition(":")
    return (client_id, client_secret)


def get_client_credentials_from_request(
    request: Request,
    client_id_form: str | None,
    client_secret_form: str | None,
) -> tuple[str | None, str | None]:
    """
    Get (client_id, client_secret) from the form or Authorization Basic.
    Form takes precedence if both client_id and client_secret are posted.
    """
    if client_id_form and client_secret_form:
        return (client_id_form.strip(), client_secret_form)
    auth_header = request.headers.get("Authorization")
    basic = _parse_basic(auth_header) if auth_header else None
    if basic:
        return basic
    return (None, None)


def authenticated_client(
    request: Request,
    client_id: str | None = Form(None),
    client_secret: str | None = Form(None),
    services: AuthServices = Depends(get_services),
) -> Client:
    """
    Dependency: resolve and authenticate the calling client.
    Missing or wrong credentials -> 401 invalid_client.
    """
    cid, secret = get_client_credentials_from_request(request, client_id, client_secret)
    if not cid or not secret:
        raise oauth_error(
            401,
            "invalid_client",
            "Client credentials missing",
            headers={"WWW-Authenticate": 'Basic realm="token"'},
        )
    client = services.clients.validate_client_credentials(cid, secret)
    if client is None:
        logger.info("Client authentication failed for client_id=%s", cid)
        raise oauth_error(
            401,
            "invalid_client",
            "Client authentication failed",
            headers={"WWW-Authenticate": 'Basic realm="token"'},
        )
    return client
