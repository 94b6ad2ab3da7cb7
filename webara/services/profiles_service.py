from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..core.database import execute, fetch, fetchrow
from ..models.profile import Business, Profile

profile_tables_ready = False


async def _ensure_tables():
    global profile_tables_ready
    if profile_tables_ready:
        return
    await execute(
        """
        CREATE EXTENSION IF NOT EXISTS "pgcrypto";
        CREATE TABLE IF NOT EXISTS profiles (
          user_id TEXT PRIMARY KEY,
          email TEXT,
          full_name TEXT,
          phone TEXT,
          role TEXT NOT NULL DEFAULT 'user',
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        CREATE TABLE IF NOT EXISTS businesses (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          owner_id TEXT NOT NULL,
          business_name TEXT NOT NULL,
          industry TEXT,
          website TEXT,
          description TEXT,
          company_size TEXT,
          business_type TEXT,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS businesses_owner_idx ON businesses(owner_id);
        """
    )
    profile_tables_ready = True


def normalize_role(role: Any) -> Optional[str]:
    if role is None:
        return None
    normalized = str(role).strip().lower()
    return normalized or None


def _to_datetime(value: Optional[object]) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def profile_from_row(row: Dict[str, Any]) -> Profile:
    return Profile(
        userId=str(row.get("user_id")),
        email=row.get("email"),
        fullName=row.get("full_name"),
        phone=row.get("phone"),
        role=normalize_role(row.get("role")) or "user",
        createdAt=_to_datetime(row.get("created_at")),
        updatedAt=_to_datetime(row.get("updated_at")),
    )


def business_from_row(row: Dict[str, Any]) -> Business:
    return Business(
        id=str(row.get("id")),
        ownerId=str(row.get("owner_id")),
        businessName=row.get("business_name") or "",
        industry=row.get("industry"),
        website=row.get("website"),
        description=row.get("description"),
        companySize=row.get("company_size"),
        businessType=row.get("business_type"),
        createdAt=_to_datetime(row.get("created_at")),
        updatedAt=_to_datetime(row.get("updated_at")),
    )


async def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    await _ensure_tables()
    return await fetchrow("SELECT * FROM profiles WHERE user_id = %s", [user_id])


async def get_profile_role(user_id: str) -> Optional[str]:
    row = await get_profile(user_id)
    return normalize_role(row.get("role")) if row else None


async def upsert_profile_role(user_id: str, role: str, email: Optional[str] = None) -> Dict[str, Any]:
    await _ensure_tables()
    saved = await fetchrow(
        """
        INSERT INTO profiles (user_id, email, role)
        VALUES (%s, %s, %s)
        ON CONFLICT (user_id) DO UPDATE SET
          role = EXCLUDED.role,
          email = COALESCE(EXCLUDED.email, profiles.email),
          updated_at = now()
        RETURNING *
        """,
        [user_id, email, role],
    )
    if not saved:
        raise RuntimeError("Failed to upsert profile role")
    return saved


async def list_profiles() -> List[Dict[str, Any]]:
    await _ensure_tables()
    return await fetch("SELECT * FROM profiles ORDER BY created_at DESC")


async def list_businesses() -> List[Dict[str, Any]]:
    await _ensure_tables()
    return await fetch("SELECT * FROM businesses ORDER BY created_at DESC")


async def list_businesses_for_owner(owner_id: str) -> List[Dict[str, Any]]:
    await _ensure_tables()
    return await fetch(
        "SELECT * FROM businesses WHERE owner_id = %s ORDER BY created_at DESC",
        [owner_id],
    )
