from fastapi import APIRouter, Body, Depends

from ..core.auth import require_admin
from ..core.errors import ValidationFailed
from ..models.user import AuthorizationContext
from ..services.roles_service import set_user_role

router = APIRouter()


@router.post("/setRole")
async def set_role(
    payload: dict = Body(...),
    admin: AuthorizationContext = Depends(require_admin),
):
    uid = payload.get("uid") if isinstance(payload, dict) else None
    role = payload.get("role") if isinstance(payload, dict) else None
    if not uid or not role:
        raise ValidationFailed("uid and role are required")
    saved_role = await set_user_role(uid, role, actor=admin.caller_id)
    return {"ok": True, "uid": uid, "role": saved_role}
