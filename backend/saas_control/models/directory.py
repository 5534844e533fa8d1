"""Directory models - people, applications and who has access to what"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, UniqueConstraint, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from saas_control.core.database import Base


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DirectoryUser(Base):
    """Workforce user synced from the identity provider"""

    __tablename__ = "directory_users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    department = Column(String(80), nullable=True)
    role = Column(String(32), default="READ_ONLY", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    access = relationship("UserAppAccess", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<DirectoryUser(id={self.id}, email='{self.email}', role='{self.role}')>"


class Application(Base):
    """SaaS application in the inventory"""

    __tablename__ = "applications"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False, index=True)
    vendor = Column(String(120), nullable=True)
    category = Column(String(64), nullable=False, default="Other")
    risk_level = Column(String(16), nullable=False, default="low")
    monthly_cost = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    access = relationship("UserAppAccess", back_populates="application", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Application(id={self.id}, name='{self.name}')>"


class UserAppAccess(Base):
    """One row of the access matrix"""

    __tablename__ = "user_app_access"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("directory_users.id", ondelete="CASCADE"), nullable=False)
    application_id = Column(String(36), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False)
    access_level = Column(String(32), nullable=False, default="user")
    last_login = Column(DateTime(timezone=True), nullable=True)

    user = relationship("DirectoryUser", back_populates="access")
    application = relationship("Application", back_populates="access")

    __table_args__ = (
        UniqueConstraint("user_id", "application_id", name="uq_user_app_access"),
        Index("idx_user_app_access_app", "application_id"),
    )
