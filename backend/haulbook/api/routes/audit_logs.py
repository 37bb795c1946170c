"""
Audit log routes (read only).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from haulbook.db.session import get_db
from haulbook.models.audit_log import AuditAction
from haulbook.models.user import User
from haulbook.schemas.audit_log import AuditLogResponse
from haulbook.schemas.common import ApiResponse, Page
from haulbook.api.dependencies import ListParams, get_current_user
from haulbook.core.utils import format_response, paginate
from haulbook.services.audit_service import list_audit_logs

router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])


@router.get("", response_model=ApiResponse[Page[AuditLogResponse]])
async def get_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    user_id: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    params: ListParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Audit trail, newest first."""
    query = list_audit_logs(db, entity_type, entity_id, action, user_id, start, end)
    rows, pagination = paginate(query, params.page, params.limit)
    return format_response({
        "items": [AuditLogResponse.model_validate(entry) for entry in rows],
        "pagination": pagination,
    })
