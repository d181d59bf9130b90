"""One collaborator's presence in a draft's real-time editing room.

All relays go to ``draft_editing_<draft_id>`` and are at-most-once; clients
must tolerate missed or reordered messages.
"""
import logging
from typing import Any, Dict

from src.auth.models import User
from src.core.websockets.manager import draft_editing_topic, manager
from src.drafting.locks import DraftLockManager
from src.drafting.models import DraftResponse
from src.shared.exceptions import LockConflict
from src.shared.models import utcnow

logger = logging.getLogger(__name__)


class DraftEditingSession:
    def __init__(self, draft: DraftResponse, user: User, locks: DraftLockManager, publisher=manager):
        self.draft = draft
        self.user = user
        self.locks = locks
        self.publisher = publisher
        self.topic = draft_editing_topic(draft.id)

    def _envelope(self, message_type: str, **payload) -> Dict[str, Any]:
        return {
            "type": message_type,
            "user_id": str(self.user.id),
            "user_name": self.user.full_name,
            **payload,
        }

    async def join(self):
        await self._presence("joined")

    async def leave(self):
        """Drops the user's lock if they held one, then announces departure."""
        try:
            await self.locks.release_on_disconnect(self.draft.id, self.user)
        finally:
            await self._presence("left")

    async def handle(self, data: Dict[str, Any]):
        action = data.get("action")
        if action == "cursor_position":
            await self.publisher.publish(self.topic, self._envelope(
                "cursor",
                position=data.get("position"),
                selection=data.get("selection"),
            ))
        elif action == "content_update":
            await self.publisher.publish(self.topic, self._envelope(
                "content_update",
                content=data.get("content"),
                timestamp=utcnow().isoformat(),
            ))
        elif action == "lock":
            try:
                await self.locks.acquire(self.draft, self.user)
            except LockConflict as e:
                await self.publisher.publish(self.topic, self._envelope(
                    "lock_rejected",
                    holder_id=str(e.holder_id),
                    holder_name=e.holder_name,
                ))
        elif action == "unlock":
            await self.locks.release(self.draft, self.user)
        else:
            logger.debug(f"Ignoring unknown editing action {action!r} on {self.topic}")

    async def _presence(self, action: str):
        await self.publisher.publish(self.topic, self._envelope(
            "presence",
            action=action,
            timestamp=utcnow().isoformat(),
        ))
