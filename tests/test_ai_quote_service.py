import json

import pytest

from webara.core.errors import UpstreamUnavailable
from webara.models.quote import QuoteFormValues
from webara.services import ai_quote_service

pytestmark = pytest.mark.anyio

QUOTE_ANSWER = {
    "projectTitle": "Booking Website",
    "projectSummary": "A five page booking site.",
    "quote": "Five pages, online booking, two week delivery.",
    "suggestedCollaboration": "Fixed price",
    "estimatedCost": 4200,
    "currency": "usd",
}


@pytest.fixture
def form():
    return QuoteFormValues(
        name="Jane Client",
        email="jane@webara-client.io",
        websiteNeeds="need a 5-page booking site",
    )


def _answers(quote=QUOTE_ANSWER, suggestions=None):
    if suggestions is None:
        suggestions = {"suggestions": ["Fixed price", "  ", "Monthly retainer"]}
    prompts = []

    async def fake_complete(prompt):
        prompts.append(prompt)
        if "Website Needs:" in prompt:
            return quote
        return suggestions

    return fake_complete, prompts


async def test_merges_quote_and_suggestions(monkeypatch, form):
    fake, prompts = _answers()
    monkeypatch.setattr(ai_quote_service, "_complete_json", fake)

    result = await ai_quote_service.generate_quote(form)

    assert result.projectTitle == "Booking Website"
    assert result.estimatedCost == 4200
    assert result.currency == "USD"
    assert result.suggestions == ["Fixed price", "Monthly retainer"]
    assert len(prompts) == 2


async def test_missing_preferences_and_budget_are_not_specified(monkeypatch, form):
    fake, prompts = _answers()
    monkeypatch.setattr(ai_quote_service, "_complete_json", fake)

    await ai_quote_service.generate_quote(form)

    quote_prompt = next(p for p in prompts if "Website Needs:" in p)
    assert "Collaboration Preferences: Not specified" in quote_prompt
    assert "Budget: Not specified" in quote_prompt
    assert "Website Needs: need a 5-page booking site" in quote_prompt


async def test_malformed_model_answer_is_upstream_failure(monkeypatch, form):
    fake, _ = _answers(quote={"quote": "missing most fields"})
    monkeypatch.setattr(ai_quote_service, "_complete_json", fake)

    with pytest.raises(UpstreamUnavailable):
        await ai_quote_service.generate_quote(form)


async def test_non_json_answer_is_upstream_failure(monkeypatch, form):
    async def not_json(prompt):
        return json.loads("Sure! Here is your quote")

    monkeypatch.setattr(ai_quote_service, "_complete_json", not_json)

    with pytest.raises(UpstreamUnavailable):
        await ai_quote_service.generate_quote(form)


def test_quote_prompt_keeps_literal_json_braces():
    prompt = ai_quote_service.build_quote_prompt("needs {x}", "prefs", "budget")

    assert '"projectTitle"' in prompt
    assert prompt.count("{") >= 2
    assert "Website Needs: needs {x}" in prompt
