from portal.models.base import Base, engine, AsyncSessionFactory
from portal.models.models import (
    User,
    TrainingPlan,
    TrainingSession,
    ReviewRecord,
    AuditLog,
    Role,
    ReviewKind,
    ReviewStatus,
    CoachDecision,
    LeaveType,
    AuditAction,
    AuditResult,
    PROFILE_FIELDS,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionFactory",
    "User",
    "TrainingPlan",
    "TrainingSession",
    "ReviewRecord",
    "AuditLog",
    "Role",
    "ReviewKind",
    "ReviewStatus",
    "CoachDecision",
    "LeaveType",
    "AuditAction",
    "AuditResult",
    "PROFILE_FIELDS",
]
