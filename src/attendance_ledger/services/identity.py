"""Role provider protocol consumed by the approval guards.

The identity system itself is external; only the two questions the
workflow needs are modelled here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol
from uuid import UUID

from attendance_ledger.config import Settings


class RoleProvider(Protocol):
    """Answers role questions about an acting user."""

    async def is_leader_for_branch(self, actor_id: UUID, branch: str | None) -> bool:
        """Return True if the actor leads the given branch."""
        ...

    async def is_admin(self, actor_id: UUID) -> bool:
        """Return True if the actor is an administrator."""
        ...


@dataclass(frozen=True)
class StaticRoleProvider:
    """Role provider backed by fixed sets of user IDs."""

    admins: frozenset[UUID] = frozenset()
    branch_leaders: Mapping[str, frozenset[UUID]] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> StaticRoleProvider:
        return cls(admins=settings.admin_user_ids, branch_leaders=settings.branch_leaders)

    async def is_leader_for_branch(self, actor_id: UUID, branch: str | None) -> bool:
        if branch is None:
            return False
        return actor_id in self.branch_leaders.get(branch, frozenset())

    async def is_admin(self, actor_id: UUID) -> bool:
        return actor_id in self.admins
