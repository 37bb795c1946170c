"""
User model for dispatcher and back-office accounts.
"""
from sqlalchemy import Column, String, Boolean
from haulbook.db.base import BaseModel


class User(BaseModel):
    """Back-office user; stamped on created_by/confirmed_by and audit entries."""
    __tablename__ = "users"

    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(50), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def display_name(self) -> str:
        return self.name or self.username
