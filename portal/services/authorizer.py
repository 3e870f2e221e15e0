"""
Transition authorizer for reviewable records.

Every allowed status change is one row of TRANSITIONS, keyed by
(kind, from_status, to_status). A row names the role that owns the edge,
which record field must point at the acting user, and which decision
fields have to be present and which ones it may write into the record.
Adding a workflow means adding rows here.

Checks run in a fixed order so the caller always gets the most precise
reason:
  1. the edge exists from the record's current status  → invalid_source_state
  2. actor role / admin flag / ownership                → wrong_role
  3. a user never decides on a record they are the subject
     of or filed on someone's behalf                     → wrong_role
  4. required decision fields                           → missing_required_field
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from portal.models.models import (
    CoachDecision,
    ReviewKind,
    ReviewRecord,
    ReviewStatus,
    Role,
    User,
)
from portal.services.errors import Allow, Decision, Deny, DenyReason

# A field check returns an error message, or None when the field is fine
FieldCheck = Callable[[ReviewRecord, Mapping[str, Any]], Optional[str]]

SUBJECT = "subject"   # owner marker: the user the record is about


@dataclass(frozen=True)
class TransitionRule:
    role:           str
    owner:          Optional[str] = None    # SUBJECT or a payload field holding a user id
    owner_optional: bool = False            # unassigned owner field → any user of `role`
    require_admin:  bool = False
    checks:         Tuple[FieldCheck, ...] = field(default_factory=tuple)
    accepts:        Tuple[str, ...] = ("review_notes",)   # decision fields this edge may write


# ─────────────────────────── Field checks ─────────────────────────────────────

def _specialist_review_present(record: ReviewRecord, extra: Mapping[str, Any]) -> Optional[str]:
    review = extra.get("specialist_review")
    if not isinstance(review, str) or not review.strip():
        return "specialist_review must not be empty"
    return None


def _specialist_recommendation_valid(record: ReviewRecord, extra: Mapping[str, Any]) -> Optional[str]:
    if extra.get("specialist_recommendation") not in CoachDecision.ALL:
        return "specialist_recommendation must be one of " + ", ".join(CoachDecision.ALL)
    return None


def _coach_decision_valid(record: ReviewRecord, extra: Mapping[str, Any]) -> Optional[str]:
    if extra.get("coach_decision") not in CoachDecision.ALL:
        return "coach_decision must be one of " + ", ".join(CoachDecision.ALL)
    return None


def _referral_specialist_present(record: ReviewRecord, extra: Mapping[str, Any]) -> Optional[str]:
    if not record.field("needs_medical_referral"):
        return None
    if extra.get("specialist_id") is None and record.field("specialist_id") is None:
        return "specialist_id is required when a medical referral is needed"
    return None


# ─────────────────────────── Transition table ─────────────────────────────────

def _rows(kind: str, sources: Tuple[str, ...], targets: Tuple[str, ...], rule: TransitionRule):
    return {(kind, src, dst): rule for src in sources for dst in targets}


_PENDING = (ReviewStatus.PENDING,)
_DECIDE  = (ReviewStatus.APPROVED, ReviewStatus.REJECTED)
_VERIFY  = (ReviewStatus.VERIFIED, ReviewStatus.REJECTED)
_CANCEL  = (ReviewStatus.CANCELLED,)

_OFFICIAL          = TransitionRule(role=Role.OFFICIAL)
_ADMIN_OFFICIAL    = TransitionRule(role=Role.OFFICIAL, require_admin=True)
_NAMED_COACH       = TransitionRule(role=Role.COACH, owner="coach_id")
_SUBMITTING_ATHLETE = TransitionRule(role=Role.ATHLETE, owner=SUBJECT, accepts=())

TRANSITIONS: Dict[Tuple[str, str, str], TransitionRule] = {
    **_rows(ReviewKind.ACHIEVEMENT, _PENDING, _VERIFY, _OFFICIAL),
    **_rows(ReviewKind.CERTIFICATION, _PENDING, _VERIFY, _OFFICIAL),

    **_rows(ReviewKind.SPORT_REGISTRATION, _PENDING, _DECIDE, _NAMED_COACH),
    **_rows(ReviewKind.SPORT_REGISTRATION, _PENDING, _CANCEL, _SUBMITTING_ATHLETE),

    **_rows(ReviewKind.PHYSIOTHERAPY_APPOINTMENT, (ReviewStatus.REQUESTED,),
            (ReviewStatus.APPROVED,), _NAMED_COACH),
    **_rows(ReviewKind.PHYSIOTHERAPY_APPOINTMENT, (ReviewStatus.REQUESTED,),
            _CANCEL, _SUBMITTING_ATHLETE),

    **_rows(ReviewKind.TRAINING_PLAN_PAUSE, _PENDING, (ReviewStatus.APPROVED,),
            TransitionRule(role=Role.COACH, owner="coach_id",
                           checks=(_referral_specialist_present,),
                           accepts=("review_notes", "specialist_id"))),
    **_rows(ReviewKind.TRAINING_PLAN_PAUSE, _PENDING, (ReviewStatus.REJECTED,), _NAMED_COACH),

    **_rows(ReviewKind.MEDICAL_LEAVE, (ReviewStatus.PENDING_SPECIALIST_REVIEW,),
            (ReviewStatus.SPECIALIST_REVIEWED,),
            TransitionRule(role=Role.SPECIALIST, owner="specialist_id", owner_optional=True,
                           checks=(_specialist_review_present, _specialist_recommendation_valid),
                           accepts=("specialist_review", "specialist_recommendation"))),
    **_rows(ReviewKind.MEDICAL_LEAVE, (ReviewStatus.PENDING_COACH_DECISION,), _DECIDE,
            TransitionRule(role=Role.COACH, owner="coach_id",
                           checks=(_coach_decision_valid,),
                           accepts=("coach_decision", "coach_notes"))),
    **_rows(ReviewKind.MEDICAL_LEAVE,
            (ReviewStatus.PENDING_SPECIALIST_REVIEW,
             ReviewStatus.SPECIALIST_REVIEWED,
             ReviewStatus.PENDING_COACH_DECISION),
            _CANCEL, _SUBMITTING_ATHLETE),

    **_rows(ReviewKind.PROFILE_CHANGE_REQUEST, _PENDING, _DECIDE, _OFFICIAL),
    **_rows(ReviewKind.USER_REGISTRATION, _PENDING, _DECIDE, _ADMIN_OFFICIAL),

    **_rows(ReviewKind.MEDICAL_REFERRAL, _PENDING,
            (ReviewStatus.ACCEPTED, ReviewStatus.DECLINED),
            TransitionRule(role=Role.SPECIALIST, owner="specialist_id")),
}


def targets_of(kind: str) -> List[str]:
    """Every status some edge of `kind` can lead to."""
    return sorted({dst for (k, _src, dst) in TRANSITIONS if k == kind})


# ─────────────────────────── Main entry point ─────────────────────────────────

def authorize(
    record: ReviewRecord,
    requested_status: str,
    actor: User,
    extra: Optional[Mapping[str, Any]] = None,
    check_fields: bool = True,
) -> Decision:
    """
    Decide whether `actor` may move `record` to `requested_status`.

    Parameters
    ----------
    record           : the record as currently stored
    requested_status : target status (exact ReviewStatus string)
    actor            : acting user (role, is_admin and id are read)
    extra            : normalized decision fields (see TransitionExtra)
    check_fields     : skip required-field checks (used to build review queues)
    """
    extra = extra or {}
    rule = TRANSITIONS.get((record.kind, record.status, requested_status))

    if rule is None:
        if record.is_terminal:
            message = f"{record.kind_label} is already {record.status}"
        elif requested_status in targets_of(record.kind):
            message = f"Cannot move from {record.status} to {requested_status}"
        else:
            message = f"{record.kind_label} has no '{requested_status}' status"
        return Deny(DenyReason.INVALID_SOURCE_STATE, message)

    if actor.role != rule.role:
        return Deny(DenyReason.WRONG_ROLE, f"Only a {rule.role} can do this")

    if rule.require_admin and not actor.is_admin:
        return Deny(DenyReason.WRONG_ROLE, "Only an admin official can do this")

    if rule.owner == SUBJECT:
        if record.subject_id != actor.id:
            return Deny(DenyReason.WRONG_ROLE, "You can only cancel your own submissions")
    elif rule.owner is not None:
        owner_id = record.field(rule.owner)
        if owner_id is None and not rule.owner_optional:
            return Deny(DenyReason.WRONG_ROLE, f"No {rule.role} is assigned to this request")
        if owner_id is not None and owner_id != actor.id:
            return Deny(DenyReason.WRONG_ROLE, f"This request is assigned to another {rule.role}")

    filed_by_actor = actor.id in (record.subject_id, record.submitted_by)
    if requested_status != ReviewStatus.CANCELLED and filed_by_actor:
        return Deny(DenyReason.WRONG_ROLE, "You cannot decide on your own submission")

    if check_fields:
        for check in rule.checks:
            problem = check(record, extra)
            if problem:
                return Deny(DenyReason.MISSING_REQUIRED_FIELD, problem)

    return Allow()


def allowed_targets(record: ReviewRecord, actor: User) -> List[str]:
    """Statuses `actor` could move `record` to right now, ignoring decision fields."""
    return [
        dst for (kind, src, dst) in TRANSITIONS
        if kind == record.kind and src == record.status
        and isinstance(authorize(record, dst, actor, check_fields=False), Allow)
    ]


def writable_fields(
    record: ReviewRecord,
    requested_status: str,
    extra: Mapping[str, Any],
) -> Dict[str, Any]:
    """The part of `extra` the edge to `requested_status` may store on the record."""
    rule = TRANSITIONS.get((record.kind, record.status, requested_status))
    if rule is None:
        return {}
    return {k: v for k, v in extra.items() if k in rule.accepts}
