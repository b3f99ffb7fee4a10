"""Session context and role-based access policies.

The session is built once per request from the access token (user + the
outlet selected at login) and handed explicitly to every service that needs
to know who is asking. Role-conditional rules live in one place: the
:class:`AccessPolicy` variants below.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from uuid import UUID

from backend.app.models.user import RoleEnum, User


@dataclass(frozen=True)
class SessionContext:
    user_id: UUID
    name: str
    role: RoleEnum
    merchant_id: UUID | None
    outlet_id: UUID | None = None
    assigned_outlet_ids: frozenset[UUID] = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user: User, outlet_id: UUID | None = None) -> SessionContext:
        return cls(
            user_id=user.id,
            name=user.name,
            role=user.role,
            merchant_id=user.merchant_id,
            outlet_id=outlet_id,
            assigned_outlet_ids=frozenset(user.outlet_ids),
        )

    @property
    def policy(self) -> AccessPolicy:
        return policy_for(self.role)


class AccessPolicy(ABC):
    """What a role may see in the sales data of its merchant."""

    @abstractmethod
    def allowed_outlets(self, session: SessionContext) -> frozenset[UUID] | None:
        """Outlets whose transactions are visible; ``None`` means no restriction."""

    @abstractmethod
    def can_filter_by_kasir(self, session: SessionContext) -> bool:
        ...

    def can_select_outlet(self, session: SessionContext, outlet_id: UUID) -> bool:
        allowed = self.allowed_outlets(session)
        return allowed is None or outlet_id in allowed


class SuperAdminPolicy(AccessPolicy):
    def allowed_outlets(self, session: SessionContext) -> frozenset[UUID] | None:
        return None

    def can_filter_by_kasir(self, session: SessionContext) -> bool:
        return True

    def can_select_outlet(self, session: SessionContext, outlet_id: UUID) -> bool:
        # Superadmins operate the platform, not a till
        return False


class MerchantAdminPolicy(AccessPolicy):
    def allowed_outlets(self, session: SessionContext) -> frozenset[UUID] | None:
        return None

    def can_filter_by_kasir(self, session: SessionContext) -> bool:
        return True


class KasirPolicy(AccessPolicy):
    """A kasir only ever sees the outlet they are working at."""

    def allowed_outlets(self, session: SessionContext) -> frozenset[UUID] | None:
        if session.outlet_id is not None:
            if session.outlet_id in session.assigned_outlet_ids:
                return frozenset({session.outlet_id})
            return frozenset()
        if len(session.assigned_outlet_ids) == 1:
            return session.assigned_outlet_ids
        return frozenset()

    def can_filter_by_kasir(self, session: SessionContext) -> bool:
        return False

    def can_select_outlet(self, session: SessionContext, outlet_id: UUID) -> bool:
        return outlet_id in session.assigned_outlet_ids


_POLICIES: dict[RoleEnum, AccessPolicy] = {
    RoleEnum.SUPERADMIN: SuperAdminPolicy(),
    RoleEnum.ADMIN: MerchantAdminPolicy(),
    RoleEnum.KASIR: KasirPolicy(),
}


def policy_for(role: RoleEnum) -> AccessPolicy:
    return _POLICIES[role]
