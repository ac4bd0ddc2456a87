"""FastAPI dependencies for authentication, repositories and services."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import User, UserRole
from ..repositories.base import Repositories
from ..repositories.sql import SqlRepositories
from ..services import (
    AuthenticationRequired,
    AuthorizationDenied,
    LifecycleEngine,
    NotificationDispatcher,
    NotificationService,
    OrganizationService,
    UserService,
    VisibilityFilter,
)
from .config import get_settings
from .database import get_session
from .security import decode_token

logger = logging.getLogger(__name__)
settings = get_settings()

# Security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_repositories(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Repositories:
    """All repositories bound to the request's session."""
    return SqlRepositories(session)


RepositoriesDep = Annotated[Repositories, Depends(get_repositories)]


def get_dispatcher(request: Request) -> NotificationDispatcher | None:
    return getattr(request.app.state, "dispatcher", None)


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    repos: RepositoriesDep,
) -> User:
    """Dependency to get the current authenticated user.

    Validates the bearer token and creates the user on first contact.
    """
    if not credentials:
        raise AuthenticationRequired("Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload:
        logger.warning("Token decode failed")
        raise AuthenticationRequired("Invalid or expired token")

    return await UserService(repos).ensure_user(payload.sub, payload.name)


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def require_admin(current_user: CurrentUserDep) -> User:
    """Require the admin role."""
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationDenied("Admin privileges required")
    return current_user


AdminDep = Annotated[User, Depends(require_admin)]


def get_lifecycle_engine(
    repos: RepositoriesDep,
    dispatcher: Annotated[NotificationDispatcher | None, Depends(get_dispatcher)],
) -> LifecycleEngine:
    return LifecycleEngine(
        repos,
        dispatcher=dispatcher,
        support_threshold=settings.support_threshold,
    )


def get_visibility_filter(repos: RepositoriesDep) -> VisibilityFilter:
    return VisibilityFilter(repos)


def get_notification_service(repos: RepositoriesDep) -> NotificationService:
    return NotificationService(repos)


def get_user_service(repos: RepositoriesDep) -> UserService:
    return UserService(repos)


def get_organization_service(repos: RepositoriesDep) -> OrganizationService:
    return OrganizationService(repos)


# Type aliases for cleaner dependency injection
EngineDep = Annotated[LifecycleEngine, Depends(get_lifecycle_engine)]
VisibilityDep = Annotated[VisibilityFilter, Depends(get_visibility_filter)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
OrganizationServiceDep = Annotated[OrganizationService, Depends(get_organization_service)]
