"""
Audit logging. Security-relevant events only; no tokens, codes, secrets or passwords.
Each event is one JSON line on the "auth_server.audit" logger.
"""
import json
import logging
import time

from fastapi import Request

EVENT_LOGIN_OK = "login_ok"
EVENT_LOGIN_FAIL = "login_fail"
EVENT_LOGOUT = "logout"
EVENT_CONSENT_ALLOW = "consent_allow"
EVENT_CONSENT_DENY = "consent_deny"
EVENT_CODE_ISSUED = "code_issued"
EVENT_TOKEN_ISSUED = "token_issued"
EVENT_TOKEN_REFRESHED = "token_refreshed"
EVENT_TOKEN_FAIL = "token_fail"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"

audit_logger = logging.getLogger("auth_server.audit")


def get_client_ip(request: Request | None) -> str | None:
    """Client IP if available (request.client.host). Forwarding headers are ignored."""
    if request is None or request.client is None:
        return None
    return getattr(request.client, "host", None)


def log_audit(
    event_type: str,
    *,
    client_id: str | None = None,
    user_id: str | None = None,
    ip: str | None = None,
    outcome: str = OUTCOME_SUCCESS,
    **details,
) -> None:
    entry = {
        "ts": round(time.time(), 3),
        "event": event_type,
        "client_id": client_id,
        "user_id": user_id,
        "ip": ip,
        "outcome": outcome,
    }
    entry.update(details)
    audit_logger.info(json.dumps(entry))
