"""Audit logging of admin edits to body assignment content."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel
from sqlalchemy import event
from sqlalchemy.orm import Session

from bodymap_api.config import get_settings

PENDING_AUDIT_KEY = "pending_audit"


class ActionType(str, Enum):
    """Admin action types for audit logging."""

    # Assignment
    ASSIGNMENT_CREATE = "assignment.create"
    ASSIGNMENT_UPDATE = "assignment.update"
    ASSIGNMENT_DELETE = "assignment.delete"
    ASSIGNMENT_DUPLICATE = "assignment.duplicate"
    ASSIGNMENT_PUBLISH = "assignment.publish"
    ASSIGNMENT_UNPUBLISH = "assignment.unpublish"

    # Main colors
    MAIN_COLOR_ADD = "main_color.add"
    MAIN_COLOR_UPDATE = "main_color.update"
    MAIN_COLOR_DELETE = "main_color.delete"

    # Sub-feelings
    SUB_FEELING_ADD = "sub_feeling.add"
    SUB_FEELING_UPDATE = "sub_feeling.update"
    SUB_FEELING_DELETE = "sub_feeling.delete"

    # Final options
    FINAL_OPTIONS_SET = "final_options.set"
    FINAL_OPTION_UPDATE = "final_option.update"


class AuditLog(BaseModel):
    """Structured audit entry for one admin edit."""

    timestamp: datetime
    admin_id: str | None
    assignment_id: str
    action_type: ActionType
    action_data: dict[str, Any]


class AuditLogger:
    """Writes one JSON line per admin content edit.

    The trail answers who changed which assignment and how, which the
    assignment document alone cannot (it only keeps ``lastEditedBy``).
    Entries are queued on the database session and written only once its
    transaction commits; a rollback discards them.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger("bodymap.audit")
        self.logger.propagate = False
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the audit logger."""
        settings = get_settings()
        if settings.log_admin_actions:
            handler: logging.Handler = logging.FileHandler(settings.audit_log_path, encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
        else:
            handler = logging.NullHandler()
        self.logger.addHandler(handler)
        self.logger.setLevel(logging.INFO)

    def record(
        self,
        session: Session,
        action_type: ActionType,
        assignment_id: str,
        admin_id: str | None = None,
        action_data: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Queue an audit event until ``session`` commits."""
        log_entry = AuditLog(
            timestamp=datetime.now(timezone.utc),
            admin_id=admin_id,
            assignment_id=assignment_id,
            action_type=action_type,
            action_data=action_data or {},
        )
        session.info.setdefault(PENDING_AUDIT_KEY, []).append(log_entry)
        return log_entry

    def write(self, log_entry: AuditLog) -> None:
        self.logger.info(log_entry.model_dump_json())


# Global audit logger instance
audit_logger = AuditLogger()


@event.listens_for(Session, "after_commit")
def _write_committed_entries(session: Session) -> None:
    for log_entry in session.info.pop(PENDING_AUDIT_KEY, []):
        audit_logger.write(log_entry)


@event.listens_for(Session, "after_rollback")
def _discard_rolled_back_entries(session: Session) -> None:
    session.info.pop(PENDING_AUDIT_KEY, None)
