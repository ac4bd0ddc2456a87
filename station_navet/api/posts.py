"""Post API routes: the feed, ideas, polls, votes, approval and claims."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from ..core.dependencies import CurrentUserDep, EngineDep, VisibilityDep
from ..schemas import (
    IdeaCreate,
    MessageResponse,
    PollCreate,
    PostCreatedResponse,
    PostResponse,
    TaskClaimedResponse,
    TaskResponse,
    VoteCreate,
    VoteTallyResponse,
)
from ..services import CreatePollInput, SubmitIdeaInput

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("", response_model=list[PostResponse])
async def list_posts(
    current_user: CurrentUserDep,
    visibility: VisibilityDep,
    station: str | None = Query(default=None, description="Narrow the feed to one station"),
    completed: bool = Query(default=False, description="Show finished posts instead"),
):
    """The caller's feed, newest first."""
    return await visibility.list_visible_posts(
        current_user,
        station_filter=station,
        completed_only=completed,
    )


@router.post("/ideas", response_model=PostCreatedResponse, status_code=status.HTTP_201_CREATED)
async def submit_idea(
    request: IdeaCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
):
    post = await engine.submit_idea(
        current_user,
        SubmitIdeaInput(
            title=request.title,
            description=request.description,
            perfect_state=request.perfect_state,
            resource_needs=request.resource_needs,
            target_audience=request.target_audience,
        ),
    )
    return post


@router.post("/polls", response_model=PostCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_poll(
    request: PollCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
):
    post = await engine.create_poll(
        current_user,
        CreatePollInput(
            title=request.title,
            description=request.description,
            target_audience=request.target_audience,
            perfect_state=request.perfect_state,
            resource_needs=request.resource_needs,
        ),
    )
    return post


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    return await engine.get_post(current_user, post_id)


@router.post("/{post_id}/votes", response_model=MessageResponse)
async def cast_vote(
    post_id: UUID,
    request: VoteCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
):
    await engine.cast_vote(current_user, post_id, request.vote_type)
    return MessageResponse(message="Vote recorded")


@router.get("/{post_id}/tally", response_model=VoteTallyResponse)
async def get_tally(post_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    return await engine.vote_tally(current_user, post_id)


@router.post("/{post_id}/approve", response_model=MessageResponse)
async def approve_idea(post_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    await engine.approve_idea(current_user, post_id)
    return MessageResponse(message="Idea approved")


@router.post("/{post_id}/claim", response_model=TaskClaimedResponse, status_code=status.HTTP_201_CREATED)
async def claim_task(post_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    """Take ownership of an approved post. Only the first claim succeeds."""
    return await engine.claim_task(current_user, post_id)


@router.get("/{post_id}/task", response_model=TaskResponse | None)
async def get_task_for_post(post_id: UUID, current_user: CurrentUserDep, engine: EngineDep):
    """The post's task, or null while nobody has claimed it."""
    task = await engine.get_task_for_post(current_user, post_id)
    if task is None:
        return None
    return TaskResponse(
        id=task.id,
        post_id=task.post_id,
        owner_id=task.owner_id,
        description=task.description,
        status=task.status,
        completed_at=task.completed_at,
        created_at=task.created_at,
        high_fives=await engine.high_five_givers(task.id),
    )
