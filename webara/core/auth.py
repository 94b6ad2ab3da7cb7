import logging
from functools import lru_cache
from typing import Optional

import firebase_admin
import psycopg
from fastapi import Depends, Header
from firebase_admin import auth as firebase_auth, credentials

from .config import settings
from .errors import Forbidden, Unauthenticated, UpstreamUnavailable
from ..models.user import USER_ROLE, AuthenticatedUser, AuthorizationContext
from ..services import profiles_service

log = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _init_firebase_app():
    if firebase_admin._apps:
        return firebase_admin.get_app()

    project_id = settings.fb_project_id
    client_email = settings.fb_client_email
    private_key = settings.fb_private_key

    if private_key:
        private_key = (
            private_key.replace("\\n", "\n")
            .replace("\\r", "\n")
            .replace('"', "")
            .strip()
        )

    if project_id and client_email and private_key:
        cred = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": project_id,
                "client_email": client_email,
                "private_key": private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
    else:
        cred = credentials.ApplicationDefault()

    return firebase_admin.initialize_app(cred, {"projectId": project_id} if project_id else None)


def _decode_token(token: str) -> AuthenticatedUser:
    _init_firebase_app()
    try:
        decoded = firebase_auth.verify_id_token(token)
    except Exception as exc:
        raise Unauthenticated() from exc

    return AuthenticatedUser(
        uid=decoded.get("uid"),
        email=decoded.get("email"),
        role=profiles_service.normalize_role(decoded.get("role")),
    )


async def get_current_user(authorization: Optional[str] = Header(None)) -> AuthenticatedUser:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated()

    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise Unauthenticated()
    return _decode_token(token)


async def resolve_authorization_context(user: AuthenticatedUser) -> AuthorizationContext:
    """Token role claim first; the stored profile role only when the claim is absent."""
    if user.role:
        return AuthorizationContext(caller_id=user.uid, email=user.email, role=user.role, role_source="token")

    try:
        profile_role = await profiles_service.get_profile_role(user.uid)
    except psycopg.Error as exc:
        log.exception("Unable to load profile role for %s", user.uid)
        raise UpstreamUnavailable("Unable to verify admin privileges.") from exc

    if profile_role:
        return AuthorizationContext(caller_id=user.uid, email=user.email, role=profile_role, role_source="profile")
    return AuthorizationContext(caller_id=user.uid, email=user.email, role=USER_ROLE, role_source="default")


async def get_auth_context(user: AuthenticatedUser = Depends(get_current_user)) -> AuthorizationContext:
    return await resolve_authorization_context(user)


async def require_admin(ctx: AuthorizationContext = Depends(get_auth_context)) -> AuthorizationContext:
    if not ctx.is_admin:
        raise Forbidden("Forbidden (admin only)")
    return ctx
