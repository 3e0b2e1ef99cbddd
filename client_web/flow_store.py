"""
In-memory store for pending authorization flows (state -> code_verifier).
Used between /start-login and /callback. Each state can be taken once.
"""
import threading
import time
from dataclasses import dataclass

# Authorization codes live 5 min at the AS; allow 10 min for the user
FLOW_TTL = 600


@dataclass
class PendingFlow:
    code_verifier: str
    created_at: float

    def expired(self) -> bool:
        return (time.monotonic() - self.created_at) > FLOW_TTL


_pending: dict[str, PendingFlow] = {}
_lock = threading.Lock()


def store_flow(state: str, code_verifier: str) -> None:
    with _lock:
        _clean_expired()
        _pending[state] = PendingFlow(code_verifier=code_verifier, created_at=time.monotonic())


def get_flow(state: str) -> PendingFlow | None:
    with _lock:
        flow = _pending.pop(state, None)
    if flow is None or flow.expired():
        return None
    return flow


def _clean_expired() -> None:
    now = time.monotonic()
    expired = [s for s, f in _pending.items() if (now - f.created_at) > FLOW_TTL]
    for s in expired:
        del _pending[s]
