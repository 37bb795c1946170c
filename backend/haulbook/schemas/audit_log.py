"""
Pydantic schemas for audit log entries.
"""
from pydantic import BaseModel
from typing import Any, Optional
from datetime import datetime
from haulbook.models.audit_log import AuditAction


class AuditLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_name: str
    action: AuditAction
    entity_type: str
    entity_id: Optional[str] = None
    changes: Optional[Any] = None
    context: Optional[Any] = None
    created_at: datetime

    class Config:
        from_attributes = True
