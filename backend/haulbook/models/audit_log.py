"""
Audit log model.
"""
from sqlalchemy import Column, String, Integer, JSON, ForeignKey, Enum as SQLEnum
from haulbook.db.base import BaseModel
import enum


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    IMPORT = "IMPORT"
    EXPORT = "EXPORT"
    CONFIRM = "CONFIRM"
    LOGIN = "LOGIN"


class AuditLog(BaseModel):
    """Who did what to which entity, with before/after details."""
    __tablename__ = "audit_logs"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    user_name = Column(String(50), nullable=False, default="system")
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(50), nullable=True, index=True)
    changes = Column(JSON, nullable=True)
    context = Column(JSON, nullable=True)
