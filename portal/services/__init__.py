from portal.services.errors import (
    Allow, Deny, Decision, Failure, ErrorKind, DenyReason,
)
from portal.services.store_service import (
    create_record, get_record, query_records, compare_and_set,
)
from portal.services.authorizer import (
    TRANSITIONS, TransitionRule, authorize, allowed_targets, targets_of, writable_fields,
)
from portal.services.workflow_service import (
    submit, transition, list_review_queue, list_submissions,
)
from portal.services.rating_service import (
    RatingBreakdown, rate, achievement_score, performance_score, hybrid_score,
    category_weight,
)
from portal.services.notification_service import (
    Notifier, LoggingNotifier, TelegramNotifier, NotificationKind, build_notifier,
    outcome_message, counterparty_message,
)
from portal.services.audit_service import add_audit_entry, list_audit_entries

__all__ = [
    # outcomes
    "Allow", "Deny", "Decision", "Failure", "ErrorKind", "DenyReason",
    # store
    "create_record", "get_record", "query_records", "compare_and_set",
    # authorizer
    "TRANSITIONS", "TransitionRule", "authorize", "allowed_targets", "targets_of",
    "writable_fields",
    # workflow
    "submit", "transition", "list_review_queue", "list_submissions",
    # rating engine
    "RatingBreakdown", "rate", "achievement_score", "performance_score", "hybrid_score",
    "category_weight",
    # notifications
    "Notifier", "LoggingNotifier", "TelegramNotifier", "NotificationKind", "build_notifier",
    "outcome_message", "counterparty_message",
    # audit
    "add_audit_entry", "list_audit_entries",
]
