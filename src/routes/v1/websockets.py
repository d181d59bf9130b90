from uuid import UUID
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.models import User
from src.collaboration.session import DraftEditingSession
from src.core.websockets.manager import case_updates_topic, draft_editing_topic, manager
from src.database import get_db
from src.drafting.locks import DraftLockManager
from src.drafting.models import DraftResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


async def _resolve_user(db: AsyncSession, user_id: str) -> User | None:
    try:
        uid = UUID(user_id)
    except ValueError:
        return None
    result = await db.execute(select(User).where(User.id == uid, User.is_active.is_(True)))
    return result.scalars().first()


@router.websocket("/cases")
async def case_updates_socket(websocket: WebSocket, user_id: str, db: AsyncSession = Depends(get_db)):
    """Analysis progress and case events for the caller's tenant."""
    user = await _resolve_user(db, user_id)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    topic = case_updates_topic(user.tenant_id)
    await manager.connect(websocket, topic)
    try:
        while True:
            # Server push only; inbound frames keep the socket alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket, topic)
    except Exception as e:
        logger.error(f"WebSocket error in room {topic}: {type(e).__name__}: {e}")
        manager.disconnect(websocket, topic)


@router.websocket("/drafts/{draft_id}")
async def draft_editing_socket(
    websocket: WebSocket,
    draft_id: UUID,
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Collaborative editing room for one draft."""
    user = await _resolve_user(db, user_id)
    draft = await db.get(DraftResponse, draft_id)
    if user is None or draft is None or draft.tenant_id != user.tenant_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    topic = draft_editing_topic(draft.id)
    session = DraftEditingSession(draft, user, DraftLockManager(db))
    await manager.connect(websocket, topic)
    await session.join()
    try:
        while True:
            data = await websocket.receive_json()
            await session.handle(data)
    except WebSocketDisconnect:
        logger.info(f"Client disconnected from room: {topic}")
    except Exception as e:
        logger.error(f"WebSocket error in room {topic}: {type(e).__name__}: {e}")
    finally:
        manager.disconnect(websocket, topic)
        await session.leave()
