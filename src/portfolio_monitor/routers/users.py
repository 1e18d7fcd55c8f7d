"""User listing routes. Password hashes never leave the user directory."""
from fastapi import APIRouter

from portfolio_monitor.core import NotFound
from portfolio_monitor.deps import CurrentUser, UserDirectoryDep
from portfolio_monitor.schemas import UserListResponse, UserRecordResponse
from portfolio_monitor.services.users import to_public

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=UserListResponse)
async def list_users(_: CurrentUser, users: UserDirectoryDep) -> UserListResponse:
    return UserListResponse(users=await users.list_all())


@router.get("/current", response_model=UserRecordResponse)
async def current_user(user: CurrentUser, users: UserDirectoryDep) -> UserRecordResponse:
    """The caller's stored user record."""
    record = await users.get_by_id(user.id)
    if record is None:
        raise NotFound("User not found")
    return UserRecordResponse(user=to_public(record))
