"""Pydantic request/response schemas."""

from widgetadmin.schemas.auth import (
    AuthResponse,
    CurrentSession,
    LoginRequest,
    MeResponse,
    MessageResponse,
    PermissionOut,
    RegisterRequest,
    RoleOut,
    SessionUser,
    UserOut,
)

__all__ = [
    "AuthResponse",
    "CurrentSession",
    "LoginRequest",
    "MeResponse",
    "MessageResponse",
    "PermissionOut",
    "RegisterRequest",
    "RoleOut",
    "SessionUser",
    "UserOut",
]
