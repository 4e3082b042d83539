"""
One-Member-One-Vote Ledger

Implements:
  - For / Against votes, one per (proposal, member), permanent once cast
  - Strict deadline: a vote at exactly ``voting_deadline`` is refused
  - Tally updates on the proposal's ``votes_for`` / ``votes_against``

Membership of the voter is checked by the engine before reaching here.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ..exceptions import GovernanceError
from ..logger import get_logger
from .proposals import Proposal

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class VotingClosedError(GovernanceError):
    """Vote submitted at or after the voting deadline."""
    code = "VotingClosed"


class DuplicateVoteError(GovernanceError):
    """Voter already cast a vote on this proposal."""
    code = "DuplicateVote"


class InvalidVoteError(GovernanceError):
    """Vote choice is not a boolean."""
    code = "InvalidVote"


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoteRecord:
    """An individual vote cast by a member."""
    proposal_id: int
    voter: str
    support: bool
    cast_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "support": self.support,
            "castAt": self.cast_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteRecord":
        return cls(
            proposal_id=int(data["proposalId"]),
            voter=data["voter"],
            support=bool(data["support"]),
            cast_at=int(data["castAt"]),
        )


# ══════════════════════════════════════════════════════════════════════
#  VOTE LEDGER
# ══════════════════════════════════════════════════════════════════════

class VoteLedger:
    """
    Vote table keyed by (proposal_id, voter).

    Records are never removed, not even when the voter later leaves the
    membership set.
    """

    def __init__(self, records: Optional[List[VoteRecord]] = None):
        self._records: Dict[Tuple[int, str], VoteRecord] = {}
        for r in records or []:
            self._records[(r.proposal_id, r.voter)] = r

    def cast(self, proposal: Proposal, voter: str, support: bool, now: int) -> VoteRecord:
        """
        Record *voter*'s choice on *proposal* and update its tally.

        Raises:
            VotingClosedError: now >= proposal.voting_deadline
            DuplicateVoteError: voter already has a record for this proposal
        """
        if not isinstance(support, bool):
            raise InvalidVoteError(f"Vote choice must be a boolean, got {support!r}")

        if not proposal.is_voting_open(now):
            raise VotingClosedError(
                f"Voting on proposal #{proposal.id} closed at "
                f"t={proposal.voting_deadline} (now={now})"
            )

        key = (proposal.id, voter)
        if key in self._records:
            raise DuplicateVoteError(
                f"{voter} has already voted on proposal #{proposal.id}"
            )

        record = VoteRecord(
            proposal_id=proposal.id,
            voter=voter,
            support=support,
            cast_at=now,
        )
        self._records[key] = record

        if support:
            proposal.votes_for += 1
        else:
            proposal.votes_against += 1

        logger.debug(
            f"Vote: {voter} → {'FOR' if support else 'AGAINST'} on proposal "
            f"#{proposal.id} (for={proposal.votes_for}, against={proposal.votes_against})"
        )
        return record

    # ── Queries ───────────────────────────────────────────────────────

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return (proposal_id, voter) in self._records

    def get(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._records.get((proposal_id, voter))

    def votes_on(self, proposal_id: int) -> List[VoteRecord]:
        return [r for (pid, _), r in self._records.items() if pid == proposal_id]

    def voters(self, proposal_id: int) -> Set[str]:
        return {voter for (pid, voter) in self._records if pid == proposal_id}

    def __iter__(self) -> Iterator[VoteRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"<VoteLedger votes={len(self._records)}>"
