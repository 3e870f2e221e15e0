"""
Review workflow service — submit records and move them through their
status lifecycle.

transition() algorithm
----------------------
1. Load the record as currently stored (not_found).
2. Ask the authorizer (forbidden + deny reason); denials are audited.
3. Build the new payload: stored payload + the decision fields the edge
   accepts + stage stamps.
4. Guarded write: the status only changes if it still equals the status
   read in step 1 (concurrent_modification otherwise).
5. Cascades in the same transaction:
     - medical leave specialist review lands directly on pending_coach_decision
     - pause approved with a referral need → new medical_referral record
     - profile change approved → requested fields copied onto the profile
     - certification verified → title appended to the coach's list
     - user registration decided → verification flag / role updated
6. Commit, then hand notification requests to the notifier.

Any store error in steps 4–6 rolls everything back (storage_error): a
record is never left decided without its cascade.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.models import (
    PROFILE_FIELDS,
    AuditAction,
    AuditResult,
    ReviewKind,
    ReviewRecord,
    ReviewStatus,
    Role,
    TrainingPlan,
    User,
)
from portal.services.audit_service import action_for, add_audit_entry
from portal.services.authorizer import allowed_targets, authorize, writable_fields
from portal.services.errors import Deny, ErrorKind, Failure
from portal.services.notification_service import (
    LoggingNotifier,
    NotificationKind,
    Notifier,
    counterparty_message,
    outcome_message,
)
from portal.services.store_service import (
    compare_and_set,
    create_record,
    get_record,
    query_records,
)
from portal.validators import TransitionExtra, normalize_payload

logger = logging.getLogger(__name__)

_default_notifier = LoggingNotifier()

# Requested status → status actually stored, for stages the executor advances itself
_AUTO_ADVANCE = {
    (ReviewKind.MEDICAL_LEAVE, ReviewStatus.SPECIALIST_REVIEWED): ReviewStatus.PENDING_COACH_DECISION,
}

# Payload fields holding a user id, and the role that user must have
_USER_REFERENCES = {
    "coach_id":      Role.COACH,
    "specialist_id": Role.SPECIALIST,
}


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


# ── Submit ────────────────────────────────────────────────────────────────────

async def submit(
    session: AsyncSession,
    kind: str,
    subject_id: int,
    payload: Optional[Dict[str, Any]],
    submitted_by: Optional[int] = None,
) -> Tuple[Optional[ReviewRecord], Optional[Failure]]:
    """
    Create a record in its kind's initial status.

    `submitted_by` is set when someone files on the subject's behalf
    (e.g. a coach filing a pause request for an athlete).
    Returns (record, None) or (None, failure).
    """
    if kind not in ReviewKind.ALL:
        return None, Failure(ErrorKind.VALIDATION_ERROR, f"Unknown record kind '{kind}'")

    subject = await session.get(User, subject_id)
    if subject is None:
        return None, Failure(ErrorKind.VALIDATION_ERROR, f"Unknown user {subject_id}")

    try:
        data = normalize_payload(kind, payload)
    except ValidationError as e:
        return None, Failure(ErrorKind.VALIDATION_ERROR, _format_errors(e))

    if kind == ReviewKind.TRAINING_PLAN_PAUSE:
        error = await _prepare_pause_request(session, subject_id, data)
        if error:
            return None, Failure(ErrorKind.VALIDATION_ERROR, error)

    error = await _check_user_references(session, data)
    if error:
        return None, Failure(ErrorKind.VALIDATION_ERROR, error)

    try:
        record = await create_record(session, kind, subject_id, data, submitted_by=submitted_by)
        add_audit_entry(
            session,
            action=AuditAction.RESOURCE_CREATED,
            resource_type=kind,
            resource_id=record.id,
            result=AuditResult.SUCCESS,
            actor_id=submitted_by if submitted_by is not None else subject_id,
            status_after=record.status,
        )
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Could not store %s for user %d", kind, subject_id)
        return None, Failure(ErrorKind.STORAGE_ERROR, "Could not store the submission")

    logger.info("Submitted %s %s for user %d", kind, record.id, subject_id)
    return record, None


async def _prepare_pause_request(
    session: AsyncSession,
    athlete_id: int,
    data: Dict[str, Any],
) -> str:
    """Fill in the plan's coach and reject duplicates. Returns an error message or ''."""
    plan = await session.get(TrainingPlan, data["plan_id"])
    if plan is None or plan.athlete_id != athlete_id:
        return "Training plan not found for this athlete"

    if data.get("coach_id") is None:
        data["coach_id"] = plan.coach_id
    elif data["coach_id"] != plan.coach_id:
        return "coach_id does not match the plan's coach"

    pending = await query_records(
        session,
        kind=ReviewKind.TRAINING_PLAN_PAUSE,
        subject_id=athlete_id,
        status=ReviewStatus.PENDING,
    )
    if any(r.field("plan_id") == plan.id for r in pending):
        return "There is already a pending pause request for this plan"
    return ""


async def _check_user_references(session: AsyncSession, data: Dict[str, Any]) -> str:
    for field, role in _USER_REFERENCES.items():
        user_id = data.get(field)
        if user_id is None:
            continue
        user = await session.get(User, user_id)
        if user is None or user.role != role:
            return f"{field} {user_id} is not a {role}"
    return ""


# ── Transition ────────────────────────────────────────────────────────────────

async def transition(
    session: AsyncSession,
    record_id: str,
    requested_status: str,
    actor: User,
    extra: Optional[Dict[str, Any]] = None,
    notifier: Optional[Notifier] = None,
) -> Tuple[Optional[ReviewRecord], Optional[Failure]]:
    """
    Apply one status change on behalf of `actor`.
    Returns (updated_record, None) or (None, failure).
    """
    notifier = notifier or _default_notifier

    try:
        fields = TransitionExtra.model_validate(extra or {}).merged_fields()
    except ValidationError as e:
        return None, Failure(ErrorKind.VALIDATION_ERROR, _format_errors(e))

    record = await get_record(session, record_id, refresh=True)
    if record is None:
        return None, Failure(ErrorKind.NOT_FOUND, f"Record {record_id} not found")

    decision = authorize(record, requested_status, actor, fields)
    if isinstance(decision, Deny):
        logger.info(
            "Denied %s %s → %s for user %d: %s",
            record.kind, record.id, requested_status, actor.id, decision.reason,
        )
        await _audit_denial(session, record, requested_status, actor, decision)
        return None, Failure.from_deny(decision)

    fields = writable_fields(record, requested_status, fields)
    error = await _check_user_references(session, fields)
    if error:
        return None, Failure(ErrorKind.VALIDATION_ERROR, error)

    record_kind, source_status = record.kind, record.status
    final_status = _AUTO_ADVANCE.get((record.kind, requested_status), requested_status)
    now = datetime.utcnow()
    payload = {**(record.payload or {}), **fields}
    _stamp_stage(record.kind, requested_status, actor, now, payload)

    try:
        written = await compare_and_set(
            session, record.id, source_status, final_status, actor.id, now, payload,
        )
        if not written:
            # Nothing was written, the open transaction holds no changes
            logger.warning(
                "Concurrent change on %s %s (expected %s)", record_kind, record_id, source_status
            )
            return None, Failure(
                ErrorKind.CONCURRENT_MODIFICATION,
                "The record was changed by someone else, reload and try again",
            )

        await _run_cascade(session, record, requested_status, actor, payload)
        add_audit_entry(
            session,
            action=action_for(final_status),
            resource_type=record.kind,
            resource_id=record.id,
            result=AuditResult.SUCCESS,
            actor=actor,
            status_before=source_status,
            status_after=final_status,
        )
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Transition %s %s → %s failed", record_kind, record_id, final_status)
        return None, Failure(ErrorKind.STORAGE_ERROR, "Could not save the decision")

    updated = await get_record(session, record.id, refresh=True)
    logger.info(
        "%s %s: %s → %s by user %d",
        updated.kind, updated.id, source_status, final_status, actor.id,
    )
    await _emit_notifications(notifier, updated, final_status)
    return updated, None


def _stamp_stage(
    kind: str,
    requested_status: str,
    actor: User,
    now: datetime,
    payload: Dict[str, Any],
) -> None:
    """Per-stage timestamps and the reviewing specialist of a medical leave."""
    if kind != ReviewKind.MEDICAL_LEAVE:
        return
    if requested_status == ReviewStatus.SPECIALIST_REVIEWED:
        payload["specialist_id"] = actor.id
        payload["specialist_reviewed_at"] = now.isoformat()
    elif requested_status in (ReviewStatus.APPROVED, ReviewStatus.REJECTED):
        payload["coach_decided_at"] = now.isoformat()


async def _run_cascade(
    session: AsyncSession,
    record: ReviewRecord,
    status: str,
    actor: User,
    payload: Dict[str, Any],
) -> None:
    kind = record.kind

    if kind == ReviewKind.TRAINING_PLAN_PAUSE and status == ReviewStatus.APPROVED:
        if payload.get("needs_medical_referral"):
            referral = await create_record(
                session,
                ReviewKind.MEDICAL_REFERRAL,
                record.subject_id,
                normalize_payload(ReviewKind.MEDICAL_REFERRAL, {
                    "specialist_id":     payload["specialist_id"],
                    "reason":            payload["reason"],
                    "description":       payload.get("description"),
                    "source_request_id": record.id,
                }),
                submitted_by=actor.id,
            )
            logger.info("Pause %s spawned medical referral %s", record.id, referral.id)

    elif kind == ReviewKind.PROFILE_CHANGE_REQUEST and status == ReviewStatus.APPROVED:
        user = await session.get(User, record.subject_id)
        for key, value in (payload.get("requested_changes") or {}).items():
            if key not in PROFILE_FIELDS:
                continue
            setattr(user, key, None if value is None else str(value))

    elif kind == ReviewKind.CERTIFICATION and status == ReviewStatus.VERIFIED:
        coach = await session.get(User, record.subject_id)
        coach.certifications = [*(coach.certifications or []), payload["title"]]

    elif kind == ReviewKind.USER_REGISTRATION:
        user = await session.get(User, record.subject_id)
        if status == ReviewStatus.APPROVED:
            user.is_verified = True
            user.role = payload.get("requested_role") or user.role
        elif status == ReviewStatus.REJECTED:
            user.is_verified = False

    await session.flush()


async def _audit_denial(
    session: AsyncSession,
    record: ReviewRecord,
    requested_status: str,
    actor: User,
    deny: Deny,
) -> None:
    record_id = record.id
    try:
        add_audit_entry(
            session,
            action=AuditAction.PERMISSION_DENIED,
            resource_type=record.kind,
            resource_id=record.id,
            result=AuditResult.DENIED,
            actor=actor,
            status_before=record.status,
            status_after=requested_status,
            denial_reason=deny.reason,
        )
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Could not audit denial on %s", record_id)


async def _emit_notifications(notifier: Notifier, record: ReviewRecord, status: str) -> None:
    """Fire-and-forget: a failed delivery never undoes the committed transition."""
    if record.kind == ReviewKind.MEDICAL_LEAVE and status == ReviewStatus.PENDING_COACH_DECISION:
        kind = NotificationKind.MEDICAL_LEAVE_REVIEWED
    elif record.kind == ReviewKind.MEDICAL_LEAVE and status != ReviewStatus.CANCELLED:
        kind = NotificationKind.MEDICAL_LEAVE_DECISION
    else:
        kind = NotificationKind.for_outcome(record.kind, status)

    requests = [(record.subject_id, kind, outcome_message(record, status))]

    coach_id = record.field("coach_id")
    coach_text = counterparty_message(record, status)
    if coach_text and coach_id is not None and coach_id != record.subject_id:
        coach_kind = kind
        if status == ReviewStatus.CANCELLED and record.kind == ReviewKind.SPORT_REGISTRATION:
            coach_kind = NotificationKind.REGISTRATION_CANCELLED
        requests.append((coach_id, coach_kind, coach_text))

    for user_id, n_kind, message in requests:
        try:
            await notifier.notify(user_id, n_kind, message)
        except Exception:
            logger.warning("Notification %s to user %d failed", n_kind, user_id, exc_info=True)


# ── Queries ───────────────────────────────────────────────────────────────────

async def list_review_queue(
    session: AsyncSession,
    actor: User,
    kind: Optional[str] = None,
) -> List[ReviewRecord]:
    """Open records on which `actor` owns a decision (cancellations excluded)."""
    records = await query_records(session, kind=kind)
    return [
        r for r in records
        if not r.is_terminal
        and any(t != ReviewStatus.CANCELLED for t in allowed_targets(r, actor))
    ]


async def list_submissions(
    session: AsyncSession,
    subject_id: int,
    kind: Optional[str] = None,
    status: Optional[str] = None,
) -> List[ReviewRecord]:
    """A user's own records, including decided ones (history view)."""
    return await query_records(session, kind=kind, subject_id=subject_id, status=status)

