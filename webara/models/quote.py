from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class QuoteStatus(str, Enum):
    draft = "draft"
    pending = "pending"
    under_review = "under_review"
    accepted = "accepted"
    rejected = "rejected"
    call_requested = "call_requested"
    project_created = "project_created"


QUOTE_STATUSES = [s.value for s in QuoteStatus]


class QuoteFormValues(BaseModel):
    name: str = Field(min_length=2)
    email: EmailStr
    websiteNeeds: str = Field(min_length=10)
    collaborationPreferences: Optional[str] = None
    budget: Optional[str] = None


class AiQuoteResult(BaseModel):
    """Merged output of the quote prompt and the suggestions prompt."""

    model_config = ConfigDict(populate_by_name=True)

    projectTitle: Optional[str] = None
    projectSummary: Optional[str] = None
    quote: str
    suggestedCollaboration: str
    estimatedCost: Optional[float] = None
    currency: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)


class Quote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    owner: str
    businessId: Optional[str] = None
    title: str
    summary: str
    websiteNeeds: str
    collaborationPreferences: Optional[str] = None
    budgetRange: Optional[str] = None
    aiQuote: Optional[str] = None
    suggestedCollaboration: Optional[str] = None
    aiSuggestions: List[str] = Field(default_factory=list)
    estimatedCost: Optional[float] = None
    currency: str = "USD"
    status: QuoteStatus = QuoteStatus.pending
    adminFeedback: Optional[str] = None
    userFeedback: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class QuoteResponse(BaseModel):
    quote: Quote


class RequestCallResponse(BaseModel):
    quote: Quote
    message: str


class QuotesResponse(BaseModel):
    quotes: List[Quote]
