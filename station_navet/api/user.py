"""User API routes for the caller's own profile and onboarding."""

from fastapi import APIRouter

from ..core.dependencies import CurrentUserDep, UserServiceDep
from ..schemas import StationSelect, UserResponse
from ..services import UserWithOrg

router = APIRouter(prefix="/me", tags=["user"])


def to_user_response(info: UserWithOrg) -> UserResponse:
    return UserResponse(
        id=info.user.id,
        name=info.user.name,
        role=info.user.role,
        station=info.home.station,
        area=info.home.area,
        region=info.home.region,
    )


@router.get("", response_model=UserResponse)
async def get_me(current_user: CurrentUserDep, service: UserServiceDep):
    return to_user_response(await service.describe(current_user))


@router.post("/station", response_model=UserResponse)
async def select_station(
    request: StationSelect,
    current_user: CurrentUserDep,
    service: UserServiceDep,
):
    """Pick a station once after first sign-in."""
    user = await service.select_station(current_user, request.station)
    return to_user_response(await service.describe(user))
