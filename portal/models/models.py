"""
ORM models for the sports portal review core.

Domain overview
---------------
User            — athlete / coach / specialist / official account
  └─ TrainingPlan    — a plan a coach assigns to an athlete
       └─ TrainingSession — one session of that plan (completed or not)
ReviewRecord    — anything one role submits and another role decides on
                  (achievement, certification, medical leave, …)
AuditLog        — append-only trail of every decision and denial
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base

# ─────────────────────────── Constants ────────────────────────────────────────

class Role:
    ATHLETE    = "athlete"
    COACH      = "coach"
    SPECIALIST = "specialist"
    OFFICIAL   = "official"

    ALL = (ATHLETE, COACH, SPECIALIST, OFFICIAL)


class ReviewKind:
    ACHIEVEMENT               = "achievement"
    CERTIFICATION             = "certification"
    SPORT_REGISTRATION        = "sport_registration"
    PHYSIOTHERAPY_APPOINTMENT = "physiotherapy_appointment"
    TRAINING_PLAN_PAUSE       = "training_plan_pause"
    MEDICAL_LEAVE             = "medical_leave"
    PROFILE_CHANGE_REQUEST    = "profile_change_request"
    USER_REGISTRATION         = "user_registration"
    MEDICAL_REFERRAL          = "medical_referral"   # only spawned by a pause approval

    ALL = (
        ACHIEVEMENT, CERTIFICATION, SPORT_REGISTRATION, PHYSIOTHERAPY_APPOINTMENT,
        TRAINING_PLAN_PAUSE, MEDICAL_LEAVE, PROFILE_CHANGE_REQUEST,
        USER_REGISTRATION, MEDICAL_REFERRAL,
    )

    LABELS = {
        ACHIEVEMENT:               "Achievement",
        CERTIFICATION:             "Certification",
        SPORT_REGISTRATION:        "Sport registration",
        PHYSIOTHERAPY_APPOINTMENT: "Physiotherapy appointment",
        TRAINING_PLAN_PAUSE:       "Training plan pause request",
        MEDICAL_LEAVE:             "Medical leave request",
        PROFILE_CHANGE_REQUEST:    "Profile change request",
        USER_REGISTRATION:         "Registration",
        MEDICAL_REFERRAL:          "Medical referral",
    }


class ReviewStatus:
    PENDING                   = "pending"
    REQUESTED                 = "requested"
    PENDING_SPECIALIST_REVIEW = "pending_specialist_review"
    SPECIALIST_REVIEWED       = "specialist_reviewed"
    PENDING_COACH_DECISION    = "pending_coach_decision"
    VERIFIED                  = "verified"
    APPROVED                  = "approved"
    REJECTED                  = "rejected"
    CANCELLED                 = "cancelled"
    ACCEPTED                  = "accepted"
    DECLINED                  = "declined"
    COMPLETED                 = "completed"

    TERMINAL = frozenset({
        VERIFIED, APPROVED, REJECTED, CANCELLED, ACCEPTED, DECLINED, COMPLETED,
    })

    # State a freshly submitted record starts in
    INITIAL = {
        ReviewKind.PHYSIOTHERAPY_APPOINTMENT: REQUESTED,
        ReviewKind.MEDICAL_LEAVE:             PENDING_SPECIALIST_REVIEW,
    }

    @classmethod
    def initial_for(cls, kind: str) -> str:
        return cls.INITIAL.get(kind, cls.PENDING)


class CoachDecision:
    STOP_TRAINING     = "stop_training"
    CONTINUE_MODIFIED = "continue_modified"
    CONTINUE_NORMAL   = "continue_normal"

    ALL = (STOP_TRAINING, CONTINUE_MODIFIED, CONTINUE_NORMAL)


class LeaveType:
    INJURY           = "injury"
    ILLNESS          = "illness"
    SURGERY_RECOVERY = "surgery_recovery"
    MENTAL_HEALTH    = "mental_health"
    OTHER            = "other"


class AuditAction:
    RESOURCE_CREATED  = "resource_created"
    APPROVAL_GRANTED  = "approval_granted"
    APPROVAL_DENIED   = "approval_denied"
    STATUS_CHANGE     = "status_change"
    PERMISSION_DENIED = "permission_denied"


class AuditResult:
    SUCCESS = "success"
    DENIED  = "denied"
    ERROR   = "error"


# Profile columns a ProfileChangeRequest is allowed to touch
PROFILE_FIELDS = (
    "athlete_type",
    "school_club",
    "date_of_birth",
    "national_ranking",
    "district",
    "training_place",
)


def _new_id() -> str:
    return str(uuid.uuid4())


# ─────────────────────────── Models ───────────────────────────────────────────

class User(Base):
    """Portal account. Authentication lives outside this package."""
    __tablename__ = "users"

    id:               Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    name:             Mapped[str]           = mapped_column(String(255))
    email:            Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    role:             Mapped[str]           = mapped_column(String(20), default=Role.ATHLETE)
    is_admin:         Mapped[bool]          = mapped_column(Boolean, default=False)
    is_verified:      Mapped[bool]          = mapped_column(Boolean, default=False)
    telegram_id:      Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at:       Mapped[datetime]      = mapped_column(DateTime, default=func.now())

    # Public profile (editable through ProfileChangeRequest)
    athlete_type:     Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    school_club:      Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    date_of_birth:    Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    national_ranking: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    district:         Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    training_place:   Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Coach-only: titles of verified certifications
    certifications:   Mapped[List[str]]     = mapped_column(JSON, default=list)

    plans: Mapped[List["TrainingPlan"]] = relationship(
        back_populates="athlete", foreign_keys="TrainingPlan.athlete_id"
    )


class TrainingPlan(Base):
    """A training plan a coach assigns to one athlete."""
    __tablename__ = "training_plans"

    id:         Mapped[int]      = mapped_column(Integer, primary_key=True, autoincrement=True)
    athlete_id: Mapped[int]      = mapped_column(ForeignKey("users.id"), index=True)
    coach_id:   Mapped[int]      = mapped_column(ForeignKey("users.id"))
    title:      Mapped[str]      = mapped_column(String(255))
    status:     Mapped[str]      = mapped_column(String(30), default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    athlete:  Mapped["User"] = relationship(back_populates="plans", foreign_keys=[athlete_id])
    sessions: Mapped[List["TrainingSession"]] = relationship(
        back_populates="plan", cascade="all, delete-orphan"
    )

    @property
    def completion_ratio(self) -> Optional[float]:
        if not self.sessions:
            return None
        done = sum(1 for s in self.sessions if s.completed)
        return done / len(self.sessions)


class TrainingSession(Base):
    """A single session inside a training plan."""
    __tablename__ = "training_sessions"

    id:           Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id:      Mapped[int]                = mapped_column(ForeignKey("training_plans.id"), index=True)
    title:        Mapped[str]                = mapped_column(String(255))
    completed:    Mapped[bool]               = mapped_column(Boolean, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    plan: Mapped["TrainingPlan"] = relationship(back_populates="sessions")


class ReviewRecord(Base):
    """
    A submission moving through its kind's review lifecycle.

    `kind` and `submitted_at` never change. `status`, `decided_by`,
    `decided_at` and `payload` are only written by the workflow service.
    """
    __tablename__ = "review_records"

    id:           Mapped[str]                = mapped_column(String(36), primary_key=True, default=_new_id)
    kind:         Mapped[str]                = mapped_column(String(40), index=True)
    subject_id:   Mapped[int]                = mapped_column(ForeignKey("users.id"), index=True)
    submitted_by: Mapped[Optional[int]]      = mapped_column(ForeignKey("users.id"), nullable=True)
    status:       Mapped[str]                = mapped_column(String(40), index=True)
    submitted_at: Mapped[datetime]           = mapped_column(DateTime, default=datetime.utcnow)
    decided_by:   Mapped[Optional[int]]      = mapped_column(ForeignKey("users.id"), nullable=True)
    decided_at:   Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    payload:      Mapped[dict]               = mapped_column(JSON, default=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in ReviewStatus.TERMINAL

    @property
    def kind_label(self) -> str:
        return ReviewKind.LABELS.get(self.kind, self.kind)

    def field(self, name: str):
        """Payload value, or None when the kind does not carry it."""
        return (self.payload or {}).get(name)


class AuditLog(Base):
    """Append-only record of a review decision, creation or denial."""
    __tablename__ = "audit_logs"

    id:            Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id:      Mapped[Optional[int]]      = mapped_column(Integer, nullable=True)
    actor_role:    Mapped[Optional[str]]      = mapped_column(String(20), nullable=True)
    action:        Mapped[str]                = mapped_column(String(40))
    resource_type: Mapped[str]                = mapped_column(String(40))
    resource_id:   Mapped[Optional[str]]      = mapped_column(String(36), index=True, nullable=True)
    result:        Mapped[str]                = mapped_column(String(20))
    denial_reason: Mapped[Optional[str]]      = mapped_column(String(255), nullable=True)
    status_before: Mapped[Optional[str]]      = mapped_column(String(40), nullable=True)
    status_after:  Mapped[Optional[str]]      = mapped_column(String(40), nullable=True)
    created_at:    Mapped[datetime]           = mapped_column(DateTime, default=datetime.utcnow)
