"""SQLAlchemy ORM models."""

from widgetadmin.models.base import Base
from widgetadmin.models.rbac import Permission, Role, RolePermission, UserRole
from widgetadmin.models.tenant import Tenant
from widgetadmin.models.user import User

__all__ = ["Base", "Permission", "Role", "RolePermission", "Tenant", "User", "UserRole"]
