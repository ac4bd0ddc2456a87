"""Admin API routes for managing users."""

from uuid import UUID

from fastapi import APIRouter

from ..core.dependencies import AdminDep, UserServiceDep
from ..schemas import RoleUpdate, StationSelect, UserResponse
from .user import to_user_response

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=list[UserResponse])
async def list_users(admin: AdminDep, service: UserServiceDep):
    return [to_user_response(info) for info in await service.list_users(admin)]


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: UUID,
    request: RoleUpdate,
    admin: AdminDep,
    service: UserServiceDep,
):
    user = await service.update_role(
        admin,
        user_id,
        request.role,
        area_name=request.area,
        region_name=request.region,
    )
    return to_user_response(await service.describe(user))


@router.patch("/users/{user_id}/station", response_model=UserResponse)
async def assign_station(
    user_id: UUID,
    request: StationSelect,
    admin: AdminDep,
    service: UserServiceDep,
):
    user = await service.assign_station(admin, user_id, request.station)
    return to_user_response(await service.describe(user))
