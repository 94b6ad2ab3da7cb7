from fastapi import APIRouter, Body, Depends

from ..core.auth import get_auth_context
from ..models.profile import AdminOverviewResponse
from ..models.quote import QuoteResponse
from ..models.user import AuthorizationContext
from ..services import lifecycle_service

router = APIRouter()


@router.get("/admin/overview", response_model=AdminOverviewResponse)
async def admin_overview(ctx: AuthorizationContext = Depends(get_auth_context)):
    return await lifecycle_service.list_all_for_admin(ctx)


@router.patch("/admin/quotes/{quote_id}/feedback", response_model=QuoteResponse)
async def update_admin_feedback(
    quote_id: str,
    payload: dict = Body(...),
    ctx: AuthorizationContext = Depends(get_auth_context),
):
    quote = await lifecycle_service.set_admin_feedback(ctx, quote_id, payload.get("feedback"))
    return {"quote": quote}


@router.patch("/admin/quotes/{quote_id}/status", response_model=QuoteResponse)
async def update_quote_status(
    quote_id: str,
    payload: dict = Body(...),
    ctx: AuthorizationContext = Depends(get_auth_context),
):
    quote = await lifecycle_service.set_status(ctx, quote_id, payload.get("status"))
    return {"quote": quote}
