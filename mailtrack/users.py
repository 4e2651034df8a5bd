"""User-related routes for the Mailtrack API."""

from fastapi import APIRouter, Depends
from fastapi_limiter.depends import RateLimiter

from . import schemas
from .auth import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/me",
    response_model=schemas.UserOut,
    dependencies=[Depends(RateLimiter(times=30, seconds=60))],
)
def read_me(current_user=Depends(get_current_user)):
    """
    Retrieve details of the currently authenticated user.

    Args:
        current_user (User): User resolved from the session token.

    Returns:
        UserOut: User profile information.
    """
    return current_user
