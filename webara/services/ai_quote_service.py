"""
Thin prompt wrapper around the hosted model that drafts quotes.

Two prompts run side by side for one request:

- the quote prompt returns title, summary, narrative, suggested collaboration,
  a numeric estimate and an ISO currency code;
- the suggestions prompt returns a short ordered list of collaboration ideas.

Both answers are parsed as JSON and validated before being merged into an
``AiQuoteResult``. Any failure on the way surfaces as ``UpstreamUnavailable``.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from ..core.config import settings
from ..core.errors import UpstreamUnavailable
from ..models.quote import AiQuoteResult, QuoteFormValues

log = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"

SYSTEM_PROMPT = (
    "You are an AI assistant for Webara, a web design studio. "
    "You answer with a single JSON object and nothing else."
)


class QuoteDraft(BaseModel):
    projectTitle: str
    projectSummary: str
    quote: str
    suggestedCollaboration: str
    estimatedCost: float
    currency: str = "USD"


class SuggestionsDraft(BaseModel):
    suggestions: List[str] = Field(default_factory=list)


def build_quote_prompt(website_needs: str, collaboration_preferences: str, budget: str) -> str:
    return f"""Provide a quote and collaboration suggestions for a web design project.

Based on the user's input, write a detailed quote for their web design needs and suggest suitable
collaboration options. Consider the project scope, budget and collaboration preferences.

Return ONLY valid JSON that matches this schema exactly:
{{
  "projectTitle": "short descriptive name (<= 80 characters)",
  "projectSummary": "1-2 sentence summary of the requested work",
  "quote": "Detailed cost narrative with deliverables, timeline, and benefits",
  "suggestedCollaboration": "Best-fit collaboration approach and rationale",
  "estimatedCost": number (no currency symbols, average if given a range),
  "currency": "ISO-4217 currency code such as USD, EUR, GBP. Default to USD if unsure."
}}

When inferring the estimatedCost:
- If the budget is a range, average the numeric values.
- If the budget is missing or vague, estimate a realistic industry figure for the described scope.
- Never include commas or symbols, just the numeric value with decimals if needed.

Use the budget text to infer the currency when possible; otherwise use USD.

Website Needs: {website_needs}
Collaboration Preferences: {collaboration_preferences}
Budget: {budget}"""


def build_suggestions_prompt(project_requirements: str, collaboration_preferences: str) -> str:
    return f"""Suggest ways a client and the studio could collaborate on this project,
such as fixed price, revenue sharing, price per lead or a monthly retainer.

Return ONLY valid JSON of the form {{"suggestions": ["...", "..."]}} with three to five entries,
most suitable first, each one or two sentences long.

Project Requirements: {project_requirements}
Collaboration Preferences: {collaboration_preferences}"""


_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.ai_timeout,
            max_retries=0,
        )
    return _client


async def _complete_json(prompt: str) -> Dict[str, Any]:
    """Single model call, no retries. Returns the decoded JSON object."""
    resp = await get_client().chat.completions.create(
        model=settings.ai_model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        response_format={"type": "json_object"},
    )
    text = (resp.choices[0].message.content or "").strip()
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("Model answer is not a JSON object")
    return parsed


async def generate_quote(form: QuoteFormValues) -> AiQuoteResult:
    preferences = (form.collaborationPreferences or "").strip() or NOT_SPECIFIED
    budget = (form.budget or "").strip() or NOT_SPECIFIED

    try:
        quote_payload, suggestions_payload = await asyncio.gather(
            _complete_json(build_quote_prompt(form.websiteNeeds, preferences, budget)),
            _complete_json(build_suggestions_prompt(form.websiteNeeds, preferences)),
        )
        draft = QuoteDraft.model_validate(quote_payload)
        ideas = SuggestionsDraft.model_validate(suggestions_payload)
    except (OpenAIError, ValidationError, ValueError) as exc:
        log.exception("AI quote and suggestion generation failed")
        raise UpstreamUnavailable(
            "Failed to generate AI quote and suggestions. Please try again later."
        ) from exc

    return AiQuoteResult(
        projectTitle=draft.projectTitle,
        projectSummary=draft.projectSummary,
        quote=draft.quote,
        suggestedCollaboration=draft.suggestedCollaboration,
        estimatedCost=draft.estimatedCost,
        currency=(draft.currency or "USD").strip().upper() or "USD",
        suggestions=[s.strip() for s in ideas.suggestions if s.strip()],
    )
