"""
Governance Proposals

Defines the Proposal dataclass, its derived lifecycle phase, and the
ProposalBook that hands out sequential ids.

A proposal has exactly one transition, Open → Executed. Everything else
reported by ProposalStatus is derived from the logical clock and the tally.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional

from ..constants import DECIMAL_PRECISION
from ..exceptions import GovernanceError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InvalidProposalError(GovernanceError):
    """Raised when proposal data is invalid."""
    code = "InvalidProposal"


class UnknownProposalError(GovernanceError):
    """Raised when addressing a proposal id that was never issued."""
    code = "UnknownProposal"


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalStatus(IntEnum):
    """Phase of a proposal at a given logical time."""
    VOTING = 0       # now < voting_deadline
    TIMELOCKED = 1   # voting closed, execution delay not yet elapsed
    EXECUTABLE = 2   # delay elapsed, quorum and majority met
    BLOCKED = 3      # delay elapsed, quorum or majority unmet (not terminal)
    EXECUTED = 4     # payout confirmed


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

def parse_amount(value: Any) -> Decimal:
    """Coerce *value* to a finite Decimal, rejecting floats."""
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)) and not isinstance(value, bool):
        amount = Decimal(value)
    else:
        raise InvalidOperation(f"Unsupported amount type: {type(value).__name__}")
    if not amount.is_finite():
        raise InvalidOperation(f"Amount must be finite, got {amount}")
    if len(amount.as_tuple().digits) > DECIMAL_PRECISION:
        raise InvalidOperation(
            f"Amount has more than {DECIMAL_PRECISION} significant digits"
        )
    return amount


@dataclass
class Proposal:
    """
    A pending fund transfer subject to member vote.

    Fields:
        id:               Sequential identifier, starting at 0
        proposer:         Member address at creation time
        description:      Opaque, informational text
        value:            Amount to transfer on execution
        recipient:        Address receiving ``value``
        created_at:       Logical time of creation
        voting_deadline:  created_at + voting_duration
        votes_for:        Count of supporting votes
        votes_against:    Count of opposing votes
        executed:         Flips false → true exactly once
        executed_at:      Logical time of confirmed execution
    """
    id: int
    proposer: str
    description: str
    value: Decimal
    recipient: str
    created_at: int
    voting_deadline: int
    votes_for: int = 0
    votes_against: int = 0
    executed: bool = False
    executed_at: Optional[int] = None

    @classmethod
    def blank(cls, proposal_id: int) -> "Proposal":
        """Zero-valued record returned for ids that were never issued."""
        return cls(
            id=proposal_id,
            proposer="",
            description="",
            value=Decimal("0"),
            recipient="",
            created_at=0,
            voting_deadline=0,
        )

    # ── Properties ────────────────────────────────────────────────────

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against

    @property
    def has_majority(self) -> bool:
        """Strict majority of cast votes; ties fail."""
        return self.votes_for > self.votes_against

    def quorum_reached(self, minimum_quorum: int) -> bool:
        return self.total_votes >= minimum_quorum

    def is_voting_open(self, now: int) -> bool:
        return now < self.voting_deadline

    def execution_eta(self, execution_delay: int) -> int:
        """Last logical time at which execution is still refused."""
        return self.voting_deadline + execution_delay

    def status(self, now: int, minimum_quorum: int, execution_delay: int) -> ProposalStatus:
        if self.executed:
            return ProposalStatus.EXECUTED
        if self.is_voting_open(now):
            return ProposalStatus.VOTING
        if now <= self.execution_eta(execution_delay):
            return ProposalStatus.TIMELOCKED
        if self.quorum_reached(minimum_quorum) and self.has_majority:
            return ProposalStatus.EXECUTABLE
        return ProposalStatus.BLOCKED

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "description": self.description,
            "value": str(self.value),
            "recipient": self.recipient,
            "createdAt": self.created_at,
            "votingDeadline": self.voting_deadline,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
            "executed": self.executed,
            "executedAt": self.executed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        executed_at = data.get("executedAt")
        return cls(
            id=int(data["id"]),
            proposer=data["proposer"],
            description=data.get("description", ""),
            value=Decimal(data.get("value", "0")),
            recipient=data["recipient"],
            created_at=int(data["createdAt"]),
            voting_deadline=int(data["votingDeadline"]),
            votes_for=int(data.get("votesFor", 0)),
            votes_against=int(data.get("votesAgainst", 0)),
            executed=bool(data.get("executed", False)),
            executed_at=int(executed_at) if executed_at is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} value={self.value} → {self.recipient} "
            f"for={self.votes_for} against={self.votes_against} "
            f"executed={self.executed}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL BOOK
# ══════════════════════════════════════════════════════════════════════

class ProposalBook:
    """
    Append-only table of proposals keyed by sequential id.

    Ids start at 0 and are never reused; proposals are never deleted.
    """

    def __init__(self, proposals: Optional[List[Proposal]] = None, next_id: int = 0):
        self._proposals: Dict[int, Proposal] = {}
        for p in proposals or []:
            self._proposals[p.id] = p
        self._next_id = max(next_id, max(self._proposals, default=-1) + 1)

    def create(
        self,
        proposer: str,
        description: str,
        value: Decimal,
        recipient: str,
        created_at: int,
        voting_duration: int,
    ) -> Proposal:
        if value < 0:
            raise InvalidProposalError(f"Proposal value cannot be negative: {value}")
        if not isinstance(description, str):
            raise InvalidProposalError("Proposal description must be text")

        proposal = Proposal(
            id=self._next_id,
            proposer=proposer,
            description=description,
            value=value,
            recipient=recipient,
            created_at=created_at,
            voting_deadline=created_at + voting_duration,
        )
        self._proposals[proposal.id] = proposal
        self._next_id += 1
        logger.debug(
            f"Proposal #{proposal.id} stored: deadline t={proposal.voting_deadline}"
        )
        return proposal

    def get(self, proposal_id: int) -> Proposal:
        """Return the live proposal or raise UnknownProposalError."""
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise UnknownProposalError(f"Proposal #{proposal_id} does not exist")
        return proposal

    def find(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def exists(self, proposal_id: int) -> bool:
        return proposal_id in self._proposals

    @property
    def count(self) -> int:
        """Number of ids issued so far (the next id to be assigned)."""
        return self._next_id

    def __iter__(self) -> Iterator[Proposal]:
        return iter([self._proposals[k] for k in sorted(self._proposals)])

    def __len__(self) -> int:
        return len(self._proposals)

    def __repr__(self) -> str:
        return f"<ProposalBook proposals={self.count}>"
