"""
Typed outcomes shared by the review services.

Nothing here is raised across the service boundary: callers get an
`Allow` / `Deny` from the authorizer and `(value, Failure)` tuples from the
workflow service, and map them to user-facing messages themselves.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


class ErrorKind:
    NOT_FOUND               = "not_found"
    FORBIDDEN               = "forbidden"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    VALIDATION_ERROR        = "validation_error"
    STORAGE_ERROR           = "storage_error"


class DenyReason:
    WRONG_ROLE             = "wrong_role"
    INVALID_SOURCE_STATE   = "invalid_source_state"
    MISSING_REQUIRED_FIELD = "missing_required_field"


@dataclass(frozen=True)
class Allow:
    allowed = True


@dataclass(frozen=True)
class Deny:
    reason:  str          # DenyReason.*
    message: str

    allowed = False


Decision = Union[Allow, Deny]


@dataclass(frozen=True)
class Failure:
    """Why a submit / transition call did not go through."""
    kind:    str                   # ErrorKind.*
    message: str
    reason:  Optional[str] = None  # DenyReason.* when kind == forbidden

    @classmethod
    def from_deny(cls, deny: Deny) -> "Failure":
        return cls(kind=ErrorKind.FORBIDDEN, message=deny.message, reason=deny.reason)
