"""ORM model package — registers all models with Base.metadata."""

from mediagen.models.generation_task import (
    GenerationTask,
    MediaKind,
    TaskStatus,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
)
from mediagen.models.notification import Notification, NotificationType
from mediagen.models.credit import CreditTransaction, CreditTransactionType

__all__ = [
    "GenerationTask",
    "MediaKind",
    "TaskStatus",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "Notification",
    "NotificationType",
    "CreditTransaction",
    "CreditTransactionType",
]
