"""
Operational event log
Records automation and integration events that workspace staff can review.
A failure to write the log never propagates to the caller.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import OpsLog

logger = logging.getLogger(__name__)


def log_ops_event(
    db: Session,
    workspace_id: Optional[int],
    message: str,
    level: str = "info",
    source: str = "system",
    meta: Optional[dict] = None,
) -> Optional[OpsLog]:
    """
    Persist one event for a workspace.

    Commits the session, so callers must have committed (or be happy to
    commit) their own pending changes first.
    """
    if not workspace_id or not message:
        return None

    try:
        entry = OpsLog(
            workspace_id=workspace_id,
            level=level,
            source=source,
            message=message,
            meta=meta or {},
        )
        db.add(entry)
        db.commit()
        return entry
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"⚠️ Failed to write ops log for workspace {workspace_id}: {e}")
        return None


def log_integration_failure(
    db: Session, workspace_id: int, channel: str, action: str, error
) -> Optional[OpsLog]:
    """Record a failed send on a notification channel"""
    return log_ops_event(
        db,
        workspace_id,
        message=f"Failed to send {channel} for {action}",
        level="error",
        source="integration",
        meta={"channel": channel, "action": action, "error": str(error)},
    )
