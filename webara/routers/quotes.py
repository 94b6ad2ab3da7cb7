from fastapi import APIRouter, Body, Depends, status

from ..core.auth import get_auth_context
from ..models.quote import AiQuoteResult, QuoteResponse, QuotesResponse, RequestCallResponse
from ..models.user import AuthorizationContext
from ..services import lifecycle_service

router = APIRouter()


@router.post("/quotes/generate", response_model=AiQuoteResult)
async def generate_quote(payload: dict = Body(...)):
    form_values = payload.get("formValues", payload) if isinstance(payload, dict) else payload
    return await lifecycle_service.generate(form_values)


@router.get("/quotes", response_model=QuotesResponse)
async def list_my_quotes(ctx: AuthorizationContext = Depends(get_auth_context)):
    quotes = await lifecycle_service.list_mine(ctx)
    return {"quotes": quotes}


@router.post("/quotes", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def propose_quote(
    payload: dict = Body(...),
    ctx: AuthorizationContext = Depends(get_auth_context),
):
    form_values = payload.get("formValues") if isinstance(payload, dict) else None
    ai_result = payload.get("aiResult") if isinstance(payload, dict) else None
    quote = await lifecycle_service.propose(ctx, form_values, ai_result)
    return {"quote": quote}


@router.get("/quotes/{quote_id}", response_model=QuoteResponse)
async def read_quote(quote_id: str, ctx: AuthorizationContext = Depends(get_auth_context)):
    quote = await lifecycle_service.get_by_id(ctx, quote_id)
    return {"quote": quote}


@router.patch("/quotes/{quote_id}/feedback", response_model=QuoteResponse)
async def update_user_feedback(
    quote_id: str,
    payload: dict = Body(...),
    ctx: AuthorizationContext = Depends(get_auth_context),
):
    quote = await lifecycle_service.set_user_feedback(ctx, quote_id, payload.get("feedback"))
    return {"quote": quote}


@router.post("/quotes/{quote_id}/request-call", response_model=RequestCallResponse)
async def request_call(quote_id: str, ctx: AuthorizationContext = Depends(get_auth_context)):
    quote, message = await lifecycle_service.request_call(ctx, quote_id)
    return {"quote": quote, "message": message}
