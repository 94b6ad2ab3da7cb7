"""
Quote lifecycle engine.

Every operation takes the caller's ``AuthorizationContext`` explicitly and is a
single request/response unit of work against the quote store. Mutations always
return the full updated quote so clients can resynchronise (or roll back an
optimistic update) without a second fetch.

Authorization tiers:

- owner: ``ctx.caller_id == quote.owner``; may read the quote, write
  ``userFeedback`` and request a call once admin feedback exists;
- admin: ``ctx.role == "admin"``; may read everything, write
  ``adminFeedback`` and set any status from any status.

Staff (``webara_staff``) may read any quote and the overview but never write.
"""
import asyncio
import logging
import math
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import psycopg
from pydantic import ValidationError

from ..core.errors import (
    DomainRuleViolation,
    Forbidden,
    NotFound,
    Unauthenticated,
    UpstreamUnavailable,
    ValidationFailed,
)
from ..models.quote import QUOTE_STATUSES, AiQuoteResult, Quote, QuoteFormValues, QuoteStatus
from ..models.user import AuthorizationContext
from . import ai_quote_service, profiles_service, quote_store

log = logging.getLogger(__name__)

FEEDBACK_REQUIRED_MESSAGE = "A call can only be requested after our team has left feedback on this quote."
CALL_ALREADY_REQUESTED_MESSAGE = "A call has already been requested for this quote."
CALL_REQUESTED_MESSAGE = "Your request has been sent. Our team will call you using the phone number on your account."

DEFAULT_CURRENCY = "USD"
SUMMARY_FALLBACK = "No summary provided yet."
TITLE_MAX_LENGTH = 80

AdminTransitionPolicy = Callable[[QuoteStatus, QuoteStatus], bool]


def allow_any_transition(current: QuoteStatus, target: QuoteStatus) -> bool:
    return True


def transition_table_policy(table: Mapping[QuoteStatus, Iterable[QuoteStatus]]) -> AdminTransitionPolicy:
    """Build a stricter admin policy from a state -> allowed next states map.

    Setting a quote to the status it already has is always allowed.
    """
    allowed = {state: frozenset(targets) for state, targets in table.items()}

    def policy(current: QuoteStatus, target: QuoteStatus) -> bool:
        return current == target or target in allowed.get(current, frozenset())

    return policy


# Admins may move a quote between any two states unless this is replaced.
admin_transition_policy: AdminTransitionPolicy = allow_any_transition


# Guards

def require_caller(ctx: Optional[AuthorizationContext]) -> AuthorizationContext:
    if ctx is None or not ctx.caller_id:
        raise Unauthenticated()
    return ctx


def require_admin(ctx: Optional[AuthorizationContext]) -> AuthorizationContext:
    ctx = require_caller(ctx)
    if not ctx.is_admin:
        raise Forbidden()
    return ctx


def require_reader(ctx: Optional[AuthorizationContext]) -> AuthorizationContext:
    ctx = require_caller(ctx)
    if not ctx.can_read_all:
        raise Forbidden()
    return ctx


def normalize_feedback(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailed("Feedback must be a string or null.")
    trimmed = value.strip()
    return trimmed or None


def parse_status(value: Any) -> QuoteStatus:
    if not isinstance(value, str):
        raise ValidationFailed("Status is required and must be a string.", allowed=QUOTE_STATUSES)
    try:
        return QuoteStatus(value.strip())
    except ValueError:
        raise ValidationFailed("Invalid status value.", allowed=QUOTE_STATUSES) from None


def has_admin_feedback(row: Mapping[str, Any]) -> bool:
    feedback = row.get("admin_feedback")
    return isinstance(feedback, str) and bool(feedback.strip())


# Row mapping

def summarize_text(text: Optional[str], fallback: str = SUMMARY_FALLBACK) -> str:
    if not text:
        return fallback
    normalized = re.sub(r"\s+", " ", text).strip()
    if not normalized:
        return fallback
    if len(normalized) <= 160:
        return normalized
    return f"{normalized[:157]}..."


def sanitize_suggestions(value: Any) -> List[str]:
    if isinstance(value, dict):
        value = value.get("suggestions")
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def quote_from_row(row: Mapping[str, Any]) -> Quote:
    return Quote(
        id=str(row.get("id")),
        owner=str(row.get("user_id")),
        businessId=str(row["business_id"]) if row.get("business_id") else None,
        title=row.get("title") or "",
        summary=summarize_text(row.get("ai_quote") or row.get("website_needs")),
        websiteNeeds=row.get("website_needs") or "",
        collaborationPreferences=row.get("collaboration_preferences"),
        budgetRange=row.get("budget_range"),
        aiQuote=row.get("ai_quote"),
        suggestedCollaboration=row.get("suggested_collaboration"),
        aiSuggestions=sanitize_suggestions(row.get("ai_suggestions")),
        estimatedCost=_as_float(row.get("estimated_cost")),
        currency=row.get("currency") or DEFAULT_CURRENCY,
        status=row.get("status") or QuoteStatus.pending,
        adminFeedback=row.get("admin_feedback"),
        userFeedback=row.get("user_feedback"),
        createdAt=row.get("created_at"),
        updatedAt=row.get("updated_at"),
    )


# Propose derivations

def parse_budget_average(budget: Optional[str]) -> Optional[float]:
    if not budget:
        return None
    values = [float(m) for m in re.findall(r"\d+(?:\.\d+)?", budget.replace(",", ""))]
    values = [v for v in values if math.isfinite(v)]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


_CURRENCY_HINTS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("EUR", ("eur", "€")),
    ("GBP", ("gbp", "£")),
    ("AUD", ("aud",)),
    ("CAD", ("cad",)),
    ("INR", ("inr", "₹")),
    ("USD", ("usd", "$")),
)


def infer_currency_from_text(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lower = text.lower()
    for code, hints in _CURRENCY_HINTS:
        if any(hint in lower for hint in hints):
            return code
    return None


def derive_project_title(ai_result: AiQuoteResult, form: QuoteFormValues) -> str:
    if ai_result.projectTitle and ai_result.projectTitle.strip():
        return ai_result.projectTitle.strip()[:TITLE_MAX_LENGTH]

    needs = form.websiteNeeds.strip()
    if needs:
        first_sentence = re.split(r"[.!?]", needs)[0].strip()
        if first_sentence:
            return first_sentence[:TITLE_MAX_LENGTH]

    return f"Website project for {form.name}"[:TITLE_MAX_LENGTH]


def parse_form_values(value: Any) -> QuoteFormValues:
    if isinstance(value, QuoteFormValues):
        return value
    try:
        return QuoteFormValues.model_validate(value)
    except ValidationError as exc:
        raise ValidationFailed("Invalid form data.") from exc


def parse_ai_result(value: Any) -> AiQuoteResult:
    if isinstance(value, AiQuoteResult):
        return value
    try:
        return AiQuoteResult.model_validate(value)
    except ValidationError as exc:
        raise ValidationFailed("Invalid AI quote data.") from exc


def build_quote_row(owner_id: str, form: QuoteFormValues, ai_result: AiQuoteResult) -> Dict[str, Any]:
    ai_estimate = ai_result.estimatedCost
    if ai_estimate is not None and math.isfinite(ai_estimate):
        estimated_cost: Optional[float] = float(ai_estimate)
    else:
        estimated_cost = parse_budget_average(form.budget)

    currency = (
        (ai_result.currency or "").strip()
        or infer_currency_from_text(form.budget)
        or DEFAULT_CURRENCY
    ).upper()

    return {
        "user_id": owner_id,
        "business_id": None,
        "title": derive_project_title(ai_result, form),
        "website_needs": form.websiteNeeds,
        "collaboration_preferences": form.collaborationPreferences or None,
        "budget_range": form.budget or None,
        "ai_quote": ai_result.quote,
        "suggested_collaboration": ai_result.suggestedCollaboration,
        "ai_suggestions": list(ai_result.suggestions),
        "status": QuoteStatus.pending.value,
        "estimated_cost": estimated_cost,
        "currency": currency,
    }


async def _store(action: str, awaitable):
    try:
        return await awaitable
    except psycopg.Error as exc:
        log.exception("Quote store failed while %s", action)
        raise UpstreamUnavailable() from exc


async def _load_quote(quote_id: str) -> Dict[str, Any]:
    if not quote_id:
        raise ValidationFailed("Quote ID is required.")
    row = await _store(f"loading quote {quote_id}", quote_store.get_quote(quote_id))
    if not row:
        raise NotFound()
    return row


def _updated_or_not_found(row: Optional[Dict[str, Any]]) -> Quote:
    if not row:
        raise NotFound()
    return quote_from_row(row)


# Operations

async def generate(form_values: Any) -> AiQuoteResult:
    """Draft a quote for a visitor. No caller identity is needed."""
    form = parse_form_values(form_values)
    return await ai_quote_service.generate_quote(form)


async def propose(ctx: Optional[AuthorizationContext], form_values: Any, ai_result: Any) -> Quote:
    ctx = require_caller(ctx)
    form = parse_form_values(form_values)
    result = parse_ai_result(ai_result)

    row = build_quote_row(ctx.caller_id, form, result)
    saved = await _store("saving a proposed quote", quote_store.insert_quote(row))
    log.info("Quote %s proposed by %s", saved.get("id"), ctx.caller_id)
    return quote_from_row(saved)


async def list_mine(ctx: Optional[AuthorizationContext]) -> List[Quote]:
    ctx = require_caller(ctx)
    rows = await _store("listing quotes", quote_store.list_quotes_for_owner(ctx.caller_id))
    return [quote_from_row(r) for r in rows]


async def get_by_id(ctx: Optional[AuthorizationContext], quote_id: str) -> Quote:
    ctx = require_caller(ctx)
    row = await _load_quote(quote_id)
    # Invisible quotes look exactly like missing ones
    if not (ctx.owns(row.get("user_id")) or ctx.can_read_all):
        raise NotFound()
    return quote_from_row(row)


async def set_admin_feedback(ctx: Optional[AuthorizationContext], quote_id: str, feedback: Any) -> Quote:
    require_admin(ctx)
    normalized = normalize_feedback(feedback)
    if not quote_id:
        raise ValidationFailed("Quote ID is required.")
    row = await _store(
        f"saving admin feedback on {quote_id}",
        quote_store.update_admin_feedback(quote_id, normalized),
    )
    return _updated_or_not_found(row)


async def set_user_feedback(ctx: Optional[AuthorizationContext], quote_id: str, feedback: Any) -> Quote:
    ctx = require_caller(ctx)
    current = await _load_quote(quote_id)
    if not ctx.owns(current.get("user_id")):
        raise Forbidden()
    normalized = normalize_feedback(feedback)
    row = await _store(
        f"saving user feedback on {quote_id}",
        quote_store.update_user_feedback(quote_id, normalized),
    )
    return _updated_or_not_found(row)


async def set_status(
    ctx: Optional[AuthorizationContext],
    quote_id: str,
    status: Any,
    policy: Optional[AdminTransitionPolicy] = None,
) -> Quote:
    require_admin(ctx)
    target = parse_status(status)
    current = await _load_quote(quote_id)

    check = policy or admin_transition_policy
    current_status = QuoteStatus(current.get("status") or QuoteStatus.pending)
    if not check(current_status, target):
        raise DomainRuleViolation(
            f"A quote cannot move from {current_status.value} to {target.value}."
        )

    row = await _store(f"updating status of {quote_id}", quote_store.update_status(quote_id, target.value))
    return _updated_or_not_found(row)


async def request_call(ctx: Optional[AuthorizationContext], quote_id: str) -> Tuple[Quote, str]:
    ctx = require_caller(ctx)
    current = await _load_quote(quote_id)

    if not ctx.owns(current.get("user_id")):
        raise Forbidden("You are not allowed to request a call for this quote.")

    if not has_admin_feedback(current):
        raise DomainRuleViolation(FEEDBACK_REQUIRED_MESSAGE)

    if current.get("status") == QuoteStatus.call_requested.value:
        return quote_from_row(current), CALL_ALREADY_REQUESTED_MESSAGE

    row = await _store(
        f"requesting a call on {quote_id}",
        quote_store.update_status(quote_id, QuoteStatus.call_requested.value),
    )
    updated = _updated_or_not_found(row)
    log.info("Call requested for quote %s by %s", quote_id, ctx.caller_id)
    return updated, CALL_REQUESTED_MESSAGE


async def list_all_for_admin(ctx: Optional[AuthorizationContext]) -> Dict[str, Any]:
    require_reader(ctx)
    profiles, businesses, quotes = await _store(
        "loading the admin overview",
        asyncio.gather(
            profiles_service.list_profiles(),
            profiles_service.list_businesses(),
            quote_store.list_all_quotes(),
        ),
    )
    return {
        "profiles": [profiles_service.profile_from_row(r) for r in profiles],
        "businesses": [profiles_service.business_from_row(r) for r in businesses],
        "quotes": [quote_from_row(r) for r in quotes],
    }


async def get_profile_data(ctx: Optional[AuthorizationContext]) -> Dict[str, Any]:
    ctx = require_caller(ctx)
    profile, businesses, quotes = await _store(
        "loading profile data",
        asyncio.gather(
            profiles_service.get_profile(ctx.caller_id),
            profiles_service.list_businesses_for_owner(ctx.caller_id),
            quote_store.list_quotes_for_owner(ctx.caller_id),
        ),
    )
    return {
        "user": {"id": ctx.caller_id, "email": ctx.email, "role": ctx.role},
        "profile": profiles_service.profile_from_row(profile) if profile else None,
        "businesses": [profiles_service.business_from_row(r) for r in businesses],
        "quotes": [quote_from_row(r) for r in quotes],
    }
