from fastapi import APIRouter, Depends

from ..core.auth import get_auth_context
from ..models.profile import ProfileDataResponse
from ..models.user import AuthorizationContext
from ..services import lifecycle_service

router = APIRouter()


@router.get("/profile/data", response_model=ProfileDataResponse)
async def profile_data(ctx: AuthorizationContext = Depends(get_auth_context)):
    return await lifecycle_service.get_profile_data(ctx)
