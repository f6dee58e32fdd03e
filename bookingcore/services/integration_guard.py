"""Checks whether a workspace has a usable notification channel"""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import Integration


def get_active_integration(db: Session, workspace_id: int, integration_type: str) -> Optional[Integration]:
    return (
        db.query(Integration)
        .filter(
            Integration.workspace_id == workspace_id,
            Integration.type == integration_type,
            Integration.is_active.is_(True),
        )
        .first()
    )


def has_active_integration(db: Session, workspace_id: int, integration_type: str) -> bool:
    return get_active_integration(db, workspace_id, integration_type) is not None
