from typing import FrozenSet, Optional

from pydantic import BaseModel

from ..core.security import UserRole


class Principal(BaseModel):
    """The authenticated actor, passed explicitly into every engine call."""
    id: int
    display_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    roles: FrozenSet[UserRole] = frozenset()

    def has_role(self, *roles: UserRole) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_admin(self) -> bool:
        return UserRole.ADMIN in self.roles

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(
            id=user.id,
            display_name=user.display_name,
            phone=user.phone_number,
            email=user.email,
            roles=frozenset({UserRole(user.role)}),
        )


class PrincipalResponse(BaseModel):
    id: int
    display_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    roles: list[str]

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            display_name=principal.display_name,
            phone=principal.phone,
            email=principal.email,
            roles=sorted(role.value for role in principal.roles),
        )
