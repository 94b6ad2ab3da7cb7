import itertools
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from webara.core.auth import get_current_user
from webara.main import app
from webara.models.user import AuthenticatedUser, AuthorizationContext
from webara.services import profiles_service, quote_store

_seq = itertools.count()


def _now():
    return datetime.now(timezone.utc)


class FakeQuoteStore:
    """In-memory stand-in for the quotes table, returning snake_case rows."""

    def __init__(self):
        self.rows = {}
        self.writes = []
        self.fail_with = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def add(self, **fields):
        row = {
            "id": str(uuid.uuid4()),
            "user_id": "owner-1",
            "business_id": None,
            "title": "Booking site",
            "website_needs": "need a 5-page booking site",
            "collaboration_preferences": None,
            "budget_range": None,
            "ai_quote": "A five page site with online booking.",
            "suggested_collaboration": "Fixed price",
            "ai_suggestions": [],
            "admin_feedback": None,
            "user_feedback": None,
            "status": "pending",
            "estimated_cost": None,
            "currency": "USD",
            "created_at": _now(),
            "updated_at": _now(),
            "_seq": next(_seq),
        }
        row.update(fields)
        self.rows[row["id"]] = row
        return self._public(row)

    @staticmethod
    def _public(row):
        return {k: v for k, v in row.items() if not k.startswith("_")}

    async def insert_quote(self, row):
        self._check()
        self.writes.append(("insert", None))
        return self.add(**row)

    async def get_quote(self, quote_id):
        self._check()
        row = self.rows.get(quote_id)
        return self._public(row) if row else None

    async def list_quotes_for_owner(self, owner_id):
        self._check()
        rows = [r for r in self.rows.values() if r["user_id"] == owner_id]
        rows.sort(key=lambda r: r["_seq"], reverse=True)
        return [self._public(r) for r in rows]

    async def list_all_quotes(self):
        self._check()
        rows = sorted(self.rows.values(), key=lambda r: r["_seq"], reverse=True)
        return [self._public(r) for r in rows]

    async def _update(self, quote_id, column, value):
        self._check()
        row = self.rows.get(quote_id)
        if row is None:
            return None
        row[column] = value
        row["updated_at"] = _now()
        self.writes.append((column, quote_id))
        return self._public(row)

    async def update_status(self, quote_id, status):
        return await self._update(quote_id, "status", status)

    async def update_admin_feedback(self, quote_id, feedback):
        return await self._update(quote_id, "admin_feedback", feedback)

    async def update_user_feedback(self, quote_id, feedback):
        return await self._update(quote_id, "user_feedback", feedback)


class FakeProfileStore:
    def __init__(self):
        self.profiles = {}
        self.businesses = []

    def add_profile(self, user_id, role="user", **fields):
        row = {
            "user_id": user_id,
            "email": fields.get("email"),
            "full_name": fields.get("full_name"),
            "phone": fields.get("phone"),
            "role": role,
            "created_at": _now(),
            "updated_at": _now(),
        }
        self.profiles[user_id] = row
        return row

    def add_business(self, owner_id, business_name):
        row = {
            "id": str(uuid.uuid4()),
            "owner_id": owner_id,
            "business_name": business_name,
            "industry": None,
            "website": None,
            "description": None,
            "company_size": None,
            "business_type": None,
            "created_at": _now(),
            "updated_at": _now(),
        }
        self.businesses.append(row)
        return row

    async def get_profile(self, user_id):
        return self.profiles.get(user_id)

    async def get_profile_role(self, user_id):
        row = self.profiles.get(user_id)
        return profiles_service.normalize_role(row.get("role")) if row else None

    async def upsert_profile_role(self, user_id, role, email=None):
        row = self.profiles.get(user_id) or self.add_profile(user_id, email=email)
        row["role"] = role
        return row

    async def list_profiles(self):
        return list(self.profiles.values())

    async def list_businesses(self):
        return list(self.businesses)

    async def list_businesses_for_owner(self, owner_id):
        return [b for b in self.businesses if b["owner_id"] == owner_id]


QUOTE_STORE_FUNCS = (
    "insert_quote",
    "get_quote",
    "list_quotes_for_owner",
    "list_all_quotes",
    "update_status",
    "update_admin_feedback",
    "update_user_feedback",
)
PROFILE_STORE_FUNCS = (
    "get_profile",
    "get_profile_role",
    "upsert_profile_role",
    "list_profiles",
    "list_businesses",
    "list_businesses_for_owner",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store(monkeypatch):
    fake = FakeQuoteStore()
    for name in QUOTE_STORE_FUNCS:
        monkeypatch.setattr(quote_store, name, getattr(fake, name))
    return fake


@pytest.fixture
def profiles(monkeypatch):
    fake = FakeProfileStore()
    for name in PROFILE_STORE_FUNCS:
        monkeypatch.setattr(profiles_service, name, getattr(fake, name))
    return fake


@pytest.fixture
def owner():
    return AuthorizationContext(caller_id="owner-1", email="owner@webara-client.io", role="user")


@pytest.fixture
def stranger():
    return AuthorizationContext(caller_id="someone-else", role="user")


@pytest.fixture
def admin():
    return AuthorizationContext(caller_id="admin-1", role="admin", role_source="token")


@pytest.fixture
def staff():
    return AuthorizationContext(caller_id="staff-1", role="webara_staff")


@pytest.fixture
def client(store, profiles):
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sign_in():
    """Make subsequent requests come from ``uid`` with an optional role claim."""

    def _sign_in(uid, role=None, email=None):
        user = AuthenticatedUser(uid=uid, email=email, role=role)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _sign_in
    app.dependency_overrides.clear()


@pytest.fixture
def form_values():
    return {
        "name": "Jane Client",
        "email": "jane@webara-client.io",
        "websiteNeeds": "need a 5-page booking site",
        "collaborationPreferences": "Fixed price",
        "budget": "$3,000 - $5,000",
    }


@pytest.fixture
def ai_result():
    return {
        "projectTitle": "Booking Website",
        "projectSummary": "A five page booking site.",
        "quote": "Five pages, online booking, two week delivery.",
        "suggestedCollaboration": "Fixed price with a maintenance retainer",
        "estimatedCost": 4200,
        "currency": "USD",
        "suggestions": ["Fixed price", "Monthly retainer"],
    }
