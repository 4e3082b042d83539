"""
Membership Registry

Tracks the set of addresses allowed to create proposals and vote. The
registry is owned by the governance state; only the engine mutates it, and
only on behalf of the owner.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from ..exceptions import GovernanceError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class UnauthorizedError(GovernanceError):
    """Caller does not hold the role the request requires."""
    code = "Unauthorized"


class AlreadyMemberError(GovernanceError):
    """Address is already a member."""
    code = "AlreadyMember"


class NotAMemberError(GovernanceError):
    """Address is not a member."""
    code = "NotAMember"


# ══════════════════════════════════════════════════════════════════════
#  MEMBER
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Member:
    """A current member and the logical time it was admitted."""
    address: str
    joined_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "joinedAt": self.joined_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(address=data["address"], joined_at=int(data["joinedAt"]))


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class MembershipRegistry:
    """
    Set of current members keyed by canonical address.

    ``count`` is derived from the underlying mapping, so it can never drift
    from the number of addresses flagged as members.
    """

    def __init__(self, members: Optional[List[Member]] = None):
        self._members: Dict[str, Member] = {}
        for member in members or []:
            self._members[member.address] = member

    def add(self, address: str, joined_at: int) -> Member:
        if address in self._members:
            raise AlreadyMemberError(f"{address} is already a member")
        member = Member(address=address, joined_at=joined_at)
        self._members[address] = member
        logger.debug(f"Member admitted: {address} at t={joined_at}")
        return member

    def remove(self, address: str) -> Member:
        member = self._members.pop(address, None)
        if member is None:
            raise NotAMemberError(f"{address} is not a member")
        logger.debug(f"Member removed: {address}")
        return member

    def is_member(self, address: str) -> bool:
        return address in self._members

    def get(self, address: str) -> Optional[Member]:
        return self._members.get(address)

    @property
    def count(self) -> int:
        return len(self._members)

    def addresses(self) -> List[str]:
        return list(self._members)

    def __iter__(self) -> Iterator[Member]:
        return iter(list(self._members.values()))

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, address: object) -> bool:
        return address in self._members

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "members": [m.to_dict() for m in self._members.values()],
        }

    def __repr__(self) -> str:
        return f"<MembershipRegistry members={self.count}>"
