from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.models import AuditEvent, AuditEventType


def record_event(
    db: AsyncSession,
    tenant_id: UUID,
    event_type: AuditEventType,
    case_id: Optional[UUID] = None,
    actor_id: Optional[UUID] = None,
    artifact_id: Optional[UUID] = None,
    artifact_type: Optional[str] = None,
    detail: Optional[Dict[str, Any]] = None,
) -> AuditEvent:
    """Stages an audit row on the caller's transaction. Does not commit."""
    event = AuditEvent(
        tenant_id=tenant_id,
        case_id=case_id,
        event_type=event_type,
        actor_id=actor_id,
        artifact_id=artifact_id,
        artifact_type=artifact_type,
        detail=detail,
    )
    db.add(event)
    return event


async def list_case_events(
    db: AsyncSession,
    tenant_id: UUID,
    case_id: UUID,
    event_type: Optional[AuditEventType] = None,
) -> List[AuditEvent]:
    """Newest first."""
    stmt = select(AuditEvent).where(AuditEvent.case_id == case_id, AuditEvent.tenant_id == tenant_id)
    if event_type is not None:
        stmt = stmt.where(AuditEvent.event_type == event_type)
    result = await db.execute(stmt.order_by(AuditEvent.created_at.desc()))
    return list(result.scalars().all())
