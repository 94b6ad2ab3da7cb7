from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .quote import Quote


class Profile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    userId: str
    email: Optional[str] = None
    fullName: Optional[str] = None
    phone: Optional[str] = None
    role: str = "user"
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class Business(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    ownerId: str
    businessName: str
    industry: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    companySize: Optional[str] = None
    businessType: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class AdminOverviewResponse(BaseModel):
    profiles: List[Profile]
    businesses: List[Business]
    quotes: List[Quote]


class CallerSummary(BaseModel):
    id: str
    email: Optional[str] = None
    role: str


class ProfileDataResponse(BaseModel):
    user: CallerSummary
    profile: Optional[Profile] = None
    businesses: List[Business]
    quotes: List[Quote]
