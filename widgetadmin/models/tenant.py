"""ORM model for tenants: isolated customer accounts that own all other data."""

from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship

from widgetadmin.models.base import Base, created_at_column, updated_at_column


class Tenant(Base):
    """Customer account with widget branding. Deleting it removes its users and roles."""

    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    logo_url = Column(String(1024), nullable=True)
    primary_color = Column(String(20), nullable=True)
    secondary_color = Column(String(20), nullable=True)
    domain = Column(String(255), nullable=True)
    welcome_message = Column(Text, nullable=True)
    created_at = created_at_column()
    updated_at = updated_at_column()

    users = relationship(
        "User",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    roles = relationship(
        "Role",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
