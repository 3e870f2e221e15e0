"""
Audit trail for review decisions.

Entries are only ever appended. Callers add them inside the same
transaction as the change they describe.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.models import AuditAction, AuditLog, ReviewStatus, User


def add_audit_entry(
    session: AsyncSession,
    action: str,
    resource_type: str,
    resource_id: Optional[str],
    result: str,
    actor: Optional[User] = None,
    actor_id: Optional[int] = None,
    status_before: Optional[str] = None,
    status_after: Optional[str] = None,
    denial_reason: Optional[str] = None,
) -> AuditLog:
    entry = AuditLog(
        actor_id=actor.id if actor is not None else actor_id,
        actor_role=actor.role if actor is not None else None,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        result=result,
        status_before=status_before,
        status_after=status_after,
        denial_reason=denial_reason,
    )
    session.add(entry)
    return entry


def action_for(status: str) -> str:
    """Audit action describing a move to `status`."""
    if status in (ReviewStatus.APPROVED, ReviewStatus.VERIFIED, ReviewStatus.ACCEPTED):
        return AuditAction.APPROVAL_GRANTED
    if status in (ReviewStatus.REJECTED, ReviewStatus.DECLINED):
        return AuditAction.APPROVAL_DENIED
    return AuditAction.STATUS_CHANGE


async def list_audit_entries(
    session: AsyncSession,
    resource_id: str,
) -> List[AuditLog]:
    """All entries for one record, oldest first."""
    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.resource_id == resource_id)
        .order_by(AuditLog.created_at, AuditLog.id)
    )
    return list(result.scalars().all())
