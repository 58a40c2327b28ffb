import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from django.utils import timezone

TOKEN_BYTES = 32


@dataclass
class Session:
    token: str
    username: str
    created_at: datetime = field(default_factory=timezone.now)

    # DRF's IsAuthenticated looks at request.user.is_authenticated
    is_authenticated = True

    def is_expired(self, ttl: Optional[int], now: Optional[datetime] = None) -> bool:
        if ttl is None:
            return False
        now = now or timezone.now()
        return now - self.created_at >= timedelta(seconds=ttl)


class SessionTable:
    """
    In-memory bearer token table.

    Sessions live until logout or process restart unless ``ttl`` (seconds)
    is set, in which case lookups past the TTL drop the session.
    """

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = ttl
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, username: str) -> str:
        token = secrets.token_hex(TOKEN_BYTES)
        with self._lock:
            self._sessions[token] = Session(token=token, username=username)
        return token

    def lookup(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is not None and session.is_expired(self.ttl):
                del self._sessions[token]
                return None
            return session

    def destroy(self, token: Optional[str]) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def __len__(self):
        with self._lock:
            return len(self._sessions)
