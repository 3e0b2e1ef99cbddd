"""
Scope helpers. Inside the server a scope set is an ordered list of distinct strings;
it becomes a space-joined string only on the wire.
"""
from collections.abc import Iterable

from auth_server.models import Client


def parse_scope(value: str | Iterable[str] | None) -> list[str]:
    """Split a space-delimited scope string (or iterable) into distinct scopes, keeping order."""
    if not value:
        return []
    items = value.split() if isinstance(value, str) else value
    result: list[str] = []
    for item in items:
        item = str(item).strip()
        if item and item not in result:
            result.append(item)
    return result


def format_scope(scopes: Iterable[str]) -> str:
    return " ".join(scopes)


def filter_allowed(requested: Iterable[str], allowed: Iterable[str]) -> list[str]:
    """Keep requested scopes that appear in allowed, in request order."""
    allowed_list = list(allowed)
    return [s for s in requested if s in allowed_list]


def scopes_for_request(scope: str | None, client: Client) -> list[str]:
    """
    Scopes for an authorization request: drop anything the client may not ask for;
    if nothing is left, fall back to the client's full scope list.
    """
    granted = filter_allowed(parse_scope(scope), client.scopes)
    return granted or list(client.scopes)
