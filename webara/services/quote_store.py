import uuid
from typing import Any, Dict, List, Optional

from psycopg.types.json import Jsonb

from ..core.database import execute, fetch, fetchrow
from ..models.quote import QUOTE_STATUSES

quote_tables_ready = False

_STATUS_LIST = ", ".join(f"'{s}'" for s in QUOTE_STATUSES)


async def _ensure_table():
    global quote_tables_ready
    if quote_tables_ready:
        return
    await execute(
        f"""
        CREATE EXTENSION IF NOT EXISTS "pgcrypto";
        CREATE TABLE IF NOT EXISTS quotes (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          user_id TEXT NOT NULL,
          business_id UUID,
          title TEXT NOT NULL,
          website_needs TEXT NOT NULL,
          collaboration_preferences TEXT,
          budget_range TEXT,
          ai_quote TEXT,
          suggested_collaboration TEXT,
          ai_suggestions JSONB NOT NULL DEFAULT '[]'::jsonb,
          admin_feedback TEXT,
          user_feedback TEXT,
          status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ({_STATUS_LIST})),
          estimated_cost NUMERIC,
          currency TEXT NOT NULL DEFAULT 'USD',
          created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS quotes_user_created_idx ON quotes(user_id, created_at DESC);
        """
    )
    quote_tables_ready = True


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


async def insert_quote(row: Dict[str, Any]) -> Dict[str, Any]:
    await _ensure_table()
    saved = await fetchrow(
        """
        INSERT INTO quotes (
          user_id, business_id, title, website_needs, collaboration_preferences,
          budget_range, ai_quote, suggested_collaboration, ai_suggestions,
          status, estimated_cost, currency
        )
        VALUES (
          %(user_id)s, %(business_id)s, %(title)s, %(website_needs)s, %(collaboration_preferences)s,
          %(budget_range)s, %(ai_quote)s, %(suggested_collaboration)s, %(ai_suggestions)s,
          %(status)s, %(estimated_cost)s, %(currency)s
        )
        RETURNING *
        """,
        {
            "user_id": row["user_id"],
            "business_id": row.get("business_id"),
            "title": row["title"],
            "website_needs": row["website_needs"],
            "collaboration_preferences": row.get("collaboration_preferences"),
            "budget_range": row.get("budget_range"),
            "ai_quote": row.get("ai_quote"),
            "suggested_collaboration": row.get("suggested_collaboration"),
            "ai_suggestions": Jsonb(row.get("ai_suggestions") or []),
            "status": row["status"],
            "estimated_cost": row.get("estimated_cost"),
            "currency": row.get("currency") or "USD",
        },
    )
    if not saved:
        raise RuntimeError("Insert into quotes returned no row")
    return saved


async def get_quote(quote_id: str) -> Optional[Dict[str, Any]]:
    if not _is_uuid(quote_id):
        return None
    await _ensure_table()
    return await fetchrow("SELECT * FROM quotes WHERE id = %s", [quote_id])


async def list_quotes_for_owner(owner_id: str) -> List[Dict[str, Any]]:
    await _ensure_table()
    return await fetch(
        "SELECT * FROM quotes WHERE user_id = %s ORDER BY created_at DESC",
        [owner_id],
    )


async def list_all_quotes() -> List[Dict[str, Any]]:
    await _ensure_table()
    return await fetch("SELECT * FROM quotes ORDER BY created_at DESC")


async def _update_column(quote_id: str, column: str, value: Any) -> Optional[Dict[str, Any]]:
    if not _is_uuid(quote_id):
        return None
    await _ensure_table()
    # column comes from the fixed set below, never from request data
    return await fetchrow(
        f"UPDATE quotes SET {column} = %s, updated_at = now() WHERE id = %s RETURNING *",
        [value, quote_id],
    )


async def update_status(quote_id: str, status: str) -> Optional[Dict[str, Any]]:
    return await _update_column(quote_id, "status", status)


async def update_admin_feedback(quote_id: str, feedback: Optional[str]) -> Optional[Dict[str, Any]]:
    return await _update_column(quote_id, "admin_feedback", feedback)


async def update_user_feedback(quote_id: str, feedback: Optional[str]) -> Optional[Dict[str, Any]]:
    return await _update_column(quote_id, "user_feedback", feedback)
