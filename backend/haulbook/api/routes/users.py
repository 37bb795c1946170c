"""
User routes.
"""
from fastapi import APIRouter, Depends
from haulbook.schemas.common import ApiResponse
from haulbook.schemas.user import UserResponse
from haulbook.models.user import User
from haulbook.core.utils import format_response
from haulbook.api.dependencies import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return format_response(UserResponse.model_validate(current_user))
