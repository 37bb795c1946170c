"""
Audit trail service.

Entries are added to the caller's session and committed together with the
operation they describe, so a rolled back operation leaves no audit row.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from haulbook.models.audit_log import AuditAction, AuditLog
from haulbook.models.user import User

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    user: Optional[User],
    action: AuditAction,
    entity_type: str,
    entity_id: Any = None,
    changes: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit entry in the current transaction (no commit)."""
    entry = AuditLog(
        user_id=user.id if user else None,
        user_name=user.display_name if user else "system",
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        changes=jsonable_encoder(changes) if changes is not None else None,
        context=jsonable_encoder(context) if context is not None else None,
    )
    db.add(entry)
    logger.debug(f"Audit staged: {action.value} {entity_type}#{entity_id}")
    return entry


def diff_changes(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    """Field-level {field: {old, new}} for the keys whose value changed."""
    changes = {}
    for key, new_value in after.items():
        old_value = before.get(key)
        if old_value != new_value:
            changes[key] = {"old": old_value, "new": new_value}
    return changes


def list_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    user_id: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """Query for audit entries, newest first."""
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    if start:
        query = query.filter(AuditLog.created_at >= start)
    if end:
        query = query.filter(AuditLog.created_at <= end)
    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
