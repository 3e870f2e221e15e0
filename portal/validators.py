"""
Submission and transition payload validation — Pydantic v2 models.

Every reviewable kind has one payload model. The models accept both the
camelCase keys sent by web clients and snake_case keys, and always dump
snake_case, so field naming is normalized here and nowhere else.
"""
from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from typing import Any, Dict, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel, to_snake

from portal.models.models import ReviewKind, Role


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _required_text(v: str, label: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{label} must not be empty")
    return v


class AchievementPayload(_Payload):
    """
    Athlete achievement submitted for official verification.

    Attributes
    ----------
    title       : Short achievement title
    category    : Competition / Season Award / Performance / Training
    date        : When it happened
    """

    title: str
    category: str = "Training"
    date: Optional[dt.date] = None
    description: Optional[str] = None
    evidence: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = _required_text(v, "Title")
        if len(v) > 255:
            raise ValueError("Title must be at most 255 characters")
        return v

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        return v.strip() or "Training"


class CertificationPayload(_Payload):
    """Coach certification submitted for official verification."""

    title: str
    issuer: Optional[str] = None
    issued_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _required_text(v, "Title")


class SportRegistrationPayload(_Payload):
    sport: str
    coach_id: int
    notes: Optional[str] = None

    @field_validator("sport")
    @classmethod
    def validate_sport(cls, v: str) -> str:
        return _required_text(v, "Sport")


class PhysiotherapyAppointmentPayload(_Payload):
    coach_id: int
    specialist_id: Optional[int] = None
    slot_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    reason: Optional[str] = None


class TrainingPlanPausePayload(_Payload):
    """
    Request to pause a training plan.

    `coach_id` may be omitted; the plan's coach is filled in on submit.
    `specialist_id` names the specialist a medical referral is bound to
    when `needs_medical_referral` is set.
    """

    plan_id: int
    coach_id: Optional[int] = None
    reason: str
    description: Optional[str] = None
    needs_medical_referral: bool = False
    specialist_id: Optional[int] = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return _required_text(v, "Reason")


class MedicalLeavePayload(_Payload):
    """
    Two-stage medical leave request (specialist review, then coach decision).

    Attributes
    ----------
    coach_id      : Coach who takes the final decision
    leave_type    : injury / illness / surgery_recovery / mental_health / other
    start_date    : First day of leave
    end_date      : Last day of leave (not before start_date)
    specialist_id : Pre-assigned specialist, optional
    """

    coach_id: int
    leave_type: Literal["injury", "illness", "surgery_recovery", "mental_health", "other"]
    reason: str
    start_date: date
    end_date: date
    specialist_id: Optional[int] = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return _required_text(v, "Reason")

    @model_validator(mode="after")
    def validate_date_range(self) -> "MedicalLeavePayload":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProfileChangePayload(_Payload):
    requested_changes: Dict[str, Any]
    reason: Optional[str] = None

    @field_validator("requested_changes")
    @classmethod
    def validate_changes(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v:
            raise ValueError("requested_changes must contain at least one field")
        return {to_snake(key): value for key, value in v.items()}


class UserRegistrationPayload(_Payload):
    requested_role: Literal["athlete", "coach", "specialist", "official"] = Role.ATHLETE
    notes: Optional[str] = None


class MedicalReferralPayload(_Payload):
    specialist_id: int
    reason: str
    urgency: Literal["low", "medium", "high"] = "medium"
    description: Optional[str] = None
    source_request_id: Optional[str] = None


PAYLOAD_MODELS: Dict[str, Type[_Payload]] = {
    ReviewKind.ACHIEVEMENT:               AchievementPayload,
    ReviewKind.CERTIFICATION:             CertificationPayload,
    ReviewKind.SPORT_REGISTRATION:        SportRegistrationPayload,
    ReviewKind.PHYSIOTHERAPY_APPOINTMENT: PhysiotherapyAppointmentPayload,
    ReviewKind.TRAINING_PLAN_PAUSE:       TrainingPlanPausePayload,
    ReviewKind.MEDICAL_LEAVE:             MedicalLeavePayload,
    ReviewKind.PROFILE_CHANGE_REQUEST:    ProfileChangePayload,
    ReviewKind.USER_REGISTRATION:         UserRegistrationPayload,
    ReviewKind.MEDICAL_REFERRAL:          MedicalReferralPayload,
}


def normalize_payload(kind: str, raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate a submission payload and return its JSON-ready snake_case form.
    Raises pydantic.ValidationError on malformed input, KeyError on unknown kind.
    """
    model = PAYLOAD_MODELS[kind]
    return model.model_validate(raw or {}).model_dump(mode="json")


class TransitionExtra(_Payload):
    """
    Decision-time fields merged into a record's payload.

    Emptiness is not checked here: the transition authorizer decides which
    fields a given edge requires.
    """

    review_notes: Optional[str] = None
    specialist_review: Optional[str] = None
    specialist_recommendation: Optional[str] = None
    coach_decision: Optional[str] = None
    coach_notes: Optional[str] = None
    specialist_id: Optional[int] = None

    def merged_fields(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent."""
        return self.model_dump(mode="json", exclude_none=True)
