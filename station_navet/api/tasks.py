"""Task API routes: completing workshop tasks and giving high-fives."""

from uuid import UUID

from fastapi import APIRouter

from ..core.dependencies import CurrentUserDep, EngineDep
from ..schemas import MessageResponse

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("/{task_id}/complete", response_model=MessageResponse)
async def complete_task(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    await engine.complete_task(current_user, task_id)
    return MessageResponse(message="Task completed")


@router.post("/{task_id}/high-fives", response_model=MessageResponse)
async def give_high_five(task_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    await engine.give_high_five(current_user, task_id)
    return MessageResponse(message="High-five given")
