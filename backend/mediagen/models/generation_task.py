from __future__ import annotations
"""GenerationTask ORM model — one user-submitted generation job and its lifecycle."""

import enum
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from mediagen.database import Base


class MediaKind(str, enum.Enum):
    """Kinds of media a task can generate."""

    IMAGE = "image"
    VIDEO = "video"
    MUSIC = "music"


class TaskStatus(str, enum.Enum):
    """Task lifecycle statuses. Forward-only; success and failed are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.SUCCESS, TaskStatus.FAILED})

# Explicit valid transitions: status -> set of reachable statuses
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING, TaskStatus.SUCCESS, TaskStatus.FAILED},
    TaskStatus.PROCESSING: {TaskStatus.SUCCESS, TaskStatus.FAILED},
    TaskStatus.SUCCESS: set(),  # terminal state
    TaskStatus.FAILED: set(),  # terminal state
}


def next_status(current: str, reported: str) -> str:
    """Resolve the status to store when a provider reports ``reported``.

    Non-terminal tasks never move backwards (a provider that flips from
    ``running`` back to ``queued`` leaves the task ``processing``), and a
    terminal task keeps its status whatever the provider says.
    """
    current_status = TaskStatus(current)
    reported_status = TaskStatus(reported)
    if reported_status == current_status:
        return current_status.value
    if reported_status in VALID_TRANSITIONS[current_status]:
        return reported_status.value
    return current_status.value


class GenerationTask(Base):
    """A generation job delegated to a third-party provider."""

    __tablename__ = "ai_tasks"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex[:36],
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Classification
    media_kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    scene: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Input
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    options: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Provider-assigned job id, absent until submission succeeds
    external_job_id: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, index=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.PENDING.value, index=True
    )

    # Output snapshots, replaced wholesale on every write
    task_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    task_result: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Bumped by every store update; compare-and-set guard for background writers
    result_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Cost accounting
    cost_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credit_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    @property
    def is_terminal(self) -> bool:
        return TaskStatus(self.status) in TERMINAL_STATUSES

    def can_transition_to(self, target_status: str) -> bool:
        """Check if the task can move to the target status."""
        try:
            current = TaskStatus(self.status)
            target = TaskStatus(target_status)
        except ValueError:
            return False
        return target in VALID_TRANSITIONS.get(current, set())
