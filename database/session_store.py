"""In-memory session store for conversation state"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


class SessionState(str, Enum):
    GREETING = "greeting"
    COLLECTING_ADDRESS = "collecting_address"
    CONFIRMING_ORDER = "confirming_order"
    HANDLING_COMPLAINT = "handling_complaint"


@dataclass
class OrderInProgress:
    product_key: str
    product: Dict[str, Any]
    quantity: int = 1
    address: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None


@dataclass
class Session:
    state: SessionState = SessionState.GREETING
    order_in_progress: Optional[OrderInProgress] = None
    complaint: Optional[Dict[str, Any]] = None
    nlp_context: Dict[str, Any] = field(default_factory=dict)
    conversation_history: List[Dict[str, Any]] = field(default_factory=list)
    last_activity: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def record(self, role: str, message: str):
        """Append a turn, keeping only the most recent ones"""
        self.conversation_history.append({
            "type": role,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat()
        })
        if len(self.conversation_history) > HISTORY_LIMIT:
            del self.conversation_history[:-HISTORY_LIMIT]
        self.last_activity = datetime.now(timezone.utc)

    def reset(self):
        """Back to the greeting state with no order in progress"""
        self.state = SessionState.GREETING
        self.order_in_progress = None


class SessionStore:
    """
    Per-sender sessions kept for the lifetime of the process

    Every sender gets one Session object and one asyncio.Lock. Sessions are
    never evicted.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, sender_id: str) -> Session:
        """Return the sender's session, creating it on first contact"""
        session = self._sessions.get(sender_id)
        if session is None:
            session = Session()
            self._sessions[sender_id] = session
            logger.info(f"🆕 New session for {mask_phone(sender_id)}")
        return session

    def lock_for(self, sender_id: str) -> asyncio.Lock:
        lock = self._locks.get(sender_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[sender_id] = lock
        return lock

    @asynccontextmanager
    async def session(self, sender_id: str):
        """
        Hold the sender's lock while the session is in use

        Usage:
            async with store.session(sender_id) as session:
                ...
        """
        async with self.lock_for(sender_id):
            yield self.get(sender_id)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Session overview with masked phone numbers"""
        return [
            {
                "phone": mask_phone(sender_id),
                "state": session.state.value,
                "last_activity": session.last_activity.isoformat(),
                "has_order": session.order_in_progress is not None,
                "history_length": len(session.conversation_history),
                "last_intent": session.nlp_context.get("last_intent")
            }
            for sender_id, session in self._sessions.items()
        ]

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, sender_id: str):
        return sender_id in self._sessions


def mask_phone(phone: str) -> str:
    return f"{phone[:8]}****" if phone else "****"
