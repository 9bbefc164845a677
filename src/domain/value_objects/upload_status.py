from __future__ import annotations

from enum import Enum


class GrantStatus(str, Enum):
    PENDING = "pending"
    USED = "used"
    EXPIRED = "expired"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    # Backend refused the completion call; parts can be re-uploaded and completion retried
    COMPLETION_FAILED = "completion_failed"
    COMPLETED = "completed"
    EXPIRED = "expired"
    ABORTED = "aborted"
    FAILED = "failed"

    def is_active(self) -> bool:
        return self in ACTIVE_SESSION_STATUSES


ACTIVE_SESSION_STATUSES = frozenset({SessionStatus.IN_PROGRESS, SessionStatus.COMPLETION_FAILED})
