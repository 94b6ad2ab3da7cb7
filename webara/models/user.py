from typing import Optional

from pydantic import BaseModel

ADMIN_ROLE = "admin"
STAFF_ROLE = "webara_staff"
USER_ROLE = "user"
KNOWN_ROLES = (USER_ROLE, ADMIN_ROLE, STAFF_ROLE)


class AuthenticatedUser(BaseModel):
    uid: str
    email: Optional[str] = None
    # Role custom claim from the ID token, None when the claim is absent
    role: Optional[str] = None


class AuthorizationContext(BaseModel):
    """Caller identity and effective role, resolved once per request."""

    caller_id: str
    email: Optional[str] = None
    role: str = USER_ROLE
    role_source: str = "default"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def can_read_all(self) -> bool:
        return self.role in (ADMIN_ROLE, STAFF_ROLE)

    def owns(self, owner_id: Optional[str]) -> bool:
        return owner_id is not None and owner_id == self.caller_id
