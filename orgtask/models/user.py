"""
User model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from orgtask.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    mail = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=True)  # owned by the identity service
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    push_token = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    role = relationship("Role", back_populates="users")
    departments = relationship("Department", secondary="department_members", back_populates="members", viewonly=True)
