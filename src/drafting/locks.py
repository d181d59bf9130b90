"""Advisory edit locks on draft responses.

A lock only decides who may submit edits through the editing surface; it is
plain read-modify-write on the draft row, not a database lock. A lock older
than the staleness threshold can be taken over by anyone.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.models import AuditEventType
from src.audit.service import record_event
from src.auth.models import User
from src.config import settings
from src.core.websockets.manager import draft_editing_topic, manager
from src.drafting.models import DraftResponse
from src.shared.exceptions import LockConflict, RecordNotFound
from src.shared.models import utcnow

logger = logging.getLogger(__name__)


class DraftLockManager:
    def __init__(
        self,
        db: AsyncSession,
        publisher=manager,
        stale_after: timedelta = timedelta(seconds=settings.DRAFT_LOCK_STALE_SECONDS),
        clock=utcnow,
    ):
        self.db = db
        self.publisher = publisher
        self.stale_after = stale_after
        self.clock = clock

    def is_stale(self, draft: DraftResponse, now: Optional[datetime] = None) -> bool:
        if draft.locked_at is None:
            return True
        return (now or self.clock()) - draft.locked_at > self.stale_after

    def held_by_other(self, draft: DraftResponse, user: User) -> bool:
        """True when someone other than ``user`` holds a live lock."""
        if draft.locked_by_id is None or draft.locked_by_id == user.id:
            return False
        return not self.is_stale(draft)

    async def ensure_can_edit(self, draft: DraftResponse, user: User) -> None:
        if self.held_by_other(draft, user):
            raise LockConflict(draft.locked_by_id, await self._holder_name(draft.locked_by_id))

    async def acquire(self, draft: DraftResponse, user: User) -> DraftResponse:
        """Grants the lock to ``user`` or raises ``LockConflict`` naming the holder."""
        await self.ensure_can_edit(draft, user)

        newly_acquired = draft.locked_by_id != user.id
        draft.locked_by_id = user.id
        draft.locked_at = self.clock()
        if newly_acquired:
            record_event(
                self.db,
                draft.tenant_id,
                AuditEventType.DRAFT_LOCKED,
                case_id=draft.case_id,
                actor_id=user.id,
                artifact_id=draft.id,
                artifact_type="draft",
            )
        await self.db.commit()

        await self.publisher.publish(draft_editing_topic(draft.id), {
            "type": "lock",
            "draft_id": str(draft.id),
            "user_id": str(user.id),
            "user_name": user.full_name,
            "locked_at": draft.locked_at.isoformat(),
        })
        return draft

    async def release(self, draft: DraftResponse, user: User) -> bool:
        """Clears the lock for its holder or an admin. Anyone else is ignored."""
        if draft.locked_by_id is None:
            return False
        if draft.locked_by_id != user.id and not user.is_admin:
            logger.debug(f"User {user.id} cannot release lock on draft {draft.id}; ignoring")
            return False

        previous_holder = draft.locked_by_id
        draft.locked_by_id = None
        draft.locked_at = None
        record_event(
            self.db,
            draft.tenant_id,
            AuditEventType.DRAFT_UNLOCKED,
            case_id=draft.case_id,
            actor_id=user.id,
            artifact_id=draft.id,
            artifact_type="draft",
            detail={"previous_holder": str(previous_holder)},
        )
        await self.db.commit()

        await self.publisher.publish(draft_editing_topic(draft.id), {
            "type": "unlock",
            "draft_id": str(draft.id),
            "user_id": str(user.id),
            "user_name": user.full_name,
        })
        return True

    async def release_on_disconnect(self, draft_id: UUID, user: User) -> bool:
        draft = await self.db.get(DraftResponse, draft_id)
        if draft is None:
            raise RecordNotFound("DraftResponse", draft_id)
        # An admin leaving must not drop someone else's lock
        if draft.locked_by_id != user.id:
            return False
        return await self.release(draft, user)

    async def _holder_name(self, user_id: UUID) -> Optional[str]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        holder = result.scalars().first()
        return holder.full_name if holder else None
