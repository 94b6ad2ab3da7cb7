import logging
from typing import Optional

import psycopg
from fastapi.concurrency import run_in_threadpool
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError

from ..core.auth import _init_firebase_app
from ..core.errors import NotFound, UpstreamUnavailable, ValidationFailed
from ..models.user import KNOWN_ROLES
from . import profiles_service

log = logging.getLogger(__name__)


async def set_user_role(uid: str, role: str, actor: Optional[str] = None) -> str:
    """Write the role to the token claim and the profile row so both sources agree."""
    normalized = profiles_service.normalize_role(role)
    if normalized not in KNOWN_ROLES:
        raise ValidationFailed("Invalid role value.", allowed=KNOWN_ROLES)

    _init_firebase_app()
    try:
        await run_in_threadpool(firebase_auth.set_custom_user_claims, uid, {"role": normalized})
    except firebase_auth.UserNotFoundError as exc:
        raise NotFound("User not found.") from exc
    except FirebaseError as exc:
        log.exception("Failed to set role claim for %s", uid)
        raise UpstreamUnavailable("Unable to update the user's role.") from exc

    try:
        await profiles_service.upsert_profile_role(uid, normalized)
    except psycopg.Error as exc:
        log.exception("Role claim for %s updated but profile row was not", uid)
        raise UpstreamUnavailable("Unable to update the user's role.") from exc

    log.info("Role of %s set to %s by %s", uid, normalized, actor or "unknown")
    return normalized
