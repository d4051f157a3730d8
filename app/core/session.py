"""
Authenticated session context passed explicitly to the dashboard flows
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from app.schemas.account import AccountResponse
from app.schemas.event import EventResponse

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional["SessionContext"]], None]


@dataclass
class SessionContext:
    """Identity of the signed-in couple plus lazily resolved ownership"""
    identity: str
    email: Optional[str] = None
    account: Optional[AccountResponse] = None
    event: Optional[EventResponse] = None
    closed: bool = field(default=False, repr=False)

    def close(self) -> None:
        self.account = None
        self.event = None
        self.closed = True


class SessionEvents:
    """Session-change notifications keyed by identity"""

    def __init__(self):
        self._listeners: Dict[str, List[SessionListener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, identity: str, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; the returned callable unsubscribes it"""
        with self._lock:
            self._listeners.setdefault(identity, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(identity, [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(identity, None)

        return unsubscribe

    def notify(self, identity: str, context: Optional[SessionContext]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(identity, []))
        for listener in listeners:
            try:
                listener(context)
            except Exception as e:
                logger.error(f"Session listener failed for {identity}: {e}")

    def listener_count(self, identity: str) -> int:
        with self._lock:
            return len(self._listeners.get(identity, []))


session_events = SessionEvents()
