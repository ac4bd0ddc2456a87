"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    close_db,
    engine,
    get_session,
    get_session_context,
    init_db,
    repositories_context,
)
from .dependencies import (
    AdminDep,
    CurrentUserDep,
    EngineDep,
    NotificationServiceDep,
    OrganizationServiceDep,
    RepositoriesDep,
    UserServiceDep,
    VisibilityDep,
    get_current_user,
    get_dispatcher,
    get_repositories,
    require_admin,
)
from .security import create_access_token, decode_token

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "get_session",
    "get_session_context",
    "repositories_context",
    "init_db",
    "close_db",
    # Dependencies
    "get_current_user",
    "get_repositories",
    "get_dispatcher",
    "require_admin",
    "CurrentUserDep",
    "AdminDep",
    "RepositoriesDep",
    "EngineDep",
    "VisibilityDep",
    "NotificationServiceDep",
    "UserServiceDep",
    "OrganizationServiceDep",
    # Security
    "create_access_token",
    "decode_token",
]
