"""
Reviewable store — database operations on review records.

All functions receive an AsyncSession and never commit; the workflow
service owns transaction boundaries so a status change and its cascades
land in one commit.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.models import ReviewRecord, ReviewStatus


async def create_record(
    session: AsyncSession,
    kind: str,
    subject_id: int,
    payload: Dict[str, Any],
    submitted_by: Optional[int] = None,
) -> ReviewRecord:
    """Insert a record in its kind's initial status."""
    record = ReviewRecord(
        kind=kind,
        subject_id=subject_id,
        submitted_by=submitted_by if submitted_by is not None else subject_id,
        status=ReviewStatus.initial_for(kind),
        submitted_at=datetime.utcnow(),
        payload=dict(payload),
    )
    session.add(record)
    await session.flush()
    return record


async def get_record(
    session: AsyncSession,
    record_id: str,
    refresh: bool = False,
) -> Optional[ReviewRecord]:
    """
    Load one record by id.
    refresh=True re-reads the row even if the object is already in the session.
    """
    q = select(ReviewRecord).where(ReviewRecord.id == record_id)
    if refresh:
        q = q.execution_options(populate_existing=True)
    result = await session.execute(q)
    return result.scalar_one_or_none()


async def query_records(
    session: AsyncSession,
    kind: Optional[str] = None,
    subject_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[ReviewRecord]:
    """Records filtered by any combination of kind, subject and status, newest first."""
    q = select(ReviewRecord).order_by(ReviewRecord.submitted_at.desc())
    if kind:
        q = q.where(ReviewRecord.kind == kind)
    if subject_id is not None:
        q = q.where(ReviewRecord.subject_id == subject_id)
    if status:
        q = q.where(ReviewRecord.status == status)
    result = await session.execute(q)
    return list(result.scalars().all())


async def compare_and_set(
    session: AsyncSession,
    record_id: str,
    expected_status: str,
    new_status: str,
    decided_by: int,
    decided_at: datetime,
    payload: Dict[str, Any],
) -> bool:
    """
    Write a decision only if the stored status still equals `expected_status`.

    Returns False when another writer changed the status first; in that case
    nothing was written.
    """
    result = await session.execute(
        update(ReviewRecord)
        .where(
            ReviewRecord.id == record_id,
            ReviewRecord.status == expected_status,
        )
        .values(
            status=new_status,
            decided_by=decided_by,
            decided_at=decided_at,
            payload=payload,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
