"""
Governance State

The single explicit state object owned by the engine: owner, immutable
parameters, membership set, proposal table, vote table, treasury balance and
the in-memory event log.

Snapshots give every request all-or-nothing semantics. The engine takes a
snapshot before mutating and either releases it on success or reverts to it
on failure. Snapshots nest, so a transfer callback that re-enters the engine
gets an atomic unit inside the outer request.
"""

import copy
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..constants import (
    GOVERNANCE_DEFAULT_EXECUTION_DELAY,
    GOVERNANCE_DEFAULT_MIN_QUORUM,
    GOVERNANCE_DEFAULT_VOTING_DURATION,
    STATE_SCHEMA_VERSION,
)
from ..exceptions import ConfigurationError
from .events import GovernanceEvent
from .membership import Member, MembershipRegistry
from .proposals import Proposal, ProposalBook
from .treasury import Treasury
from .voting import VoteLedger, VoteRecord


# ══════════════════════════════════════════════════════════════════════
#  PARAMETERS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GovernanceParameters:
    """
    Set once at construction, immutable thereafter.

    Attributes:
        minimum_quorum:            Absolute number of votes (for + against)
        voting_duration:           Logical time units voting stays open
        proposal_execution_delay:  Time units after the deadline before payout
    """
    minimum_quorum: int = GOVERNANCE_DEFAULT_MIN_QUORUM
    voting_duration: int = GOVERNANCE_DEFAULT_VOTING_DURATION
    proposal_execution_delay: int = GOVERNANCE_DEFAULT_EXECUTION_DELAY

    def __post_init__(self):
        for name in ("minimum_quorum", "voting_duration", "proposal_execution_delay"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"{name} cannot be negative, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minimumQuorum": self.minimum_quorum,
            "votingDuration": self.voting_duration,
            "proposalExecutionDelay": self.proposal_execution_delay,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceParameters":
        return cls(
            minimum_quorum=int(data.get("minimumQuorum", GOVERNANCE_DEFAULT_MIN_QUORUM)),
            voting_duration=int(data.get("votingDuration", GOVERNANCE_DEFAULT_VOTING_DURATION)),
            proposal_execution_delay=int(
                data.get("proposalExecutionDelay", GOVERNANCE_DEFAULT_EXECUTION_DELAY)
            ),
        )


# ══════════════════════════════════════════════════════════════════════
#  STATE
# ══════════════════════════════════════════════════════════════════════

_SNAPSHOT_FIELDS = ("members", "proposals", "votes", "treasury", "last_timestamp")


class GovernanceState:
    """Durable engine state plus the snapshot stack used for rollback."""

    def __init__(
        self,
        owner: str,
        parameters: GovernanceParameters,
        deployed_at: int = 0,
        members: Optional[MembershipRegistry] = None,
        proposals: Optional[ProposalBook] = None,
        votes: Optional[VoteLedger] = None,
        treasury: Optional[Treasury] = None,
        last_timestamp: Optional[int] = None,
    ):
        self.owner = owner
        self.parameters = parameters
        self.deployed_at = deployed_at
        self.members = members or MembershipRegistry()
        self.proposals = proposals or ProposalBook()
        self.votes = votes or VoteLedger()
        self.treasury = treasury or Treasury()
        self.events: List[GovernanceEvent] = []
        self.last_timestamp = last_timestamp
        self._snapshots: List[Tuple[Dict[str, Any], int]] = []

    # ── Counters ──────────────────────────────────────────────────────

    @property
    def member_count(self) -> int:
        return self.members.count

    @property
    def proposal_count(self) -> int:
        return self.proposals.count

    @property
    def balance(self) -> Decimal:
        return self.treasury.balance

    # ── Snapshots ─────────────────────────────────────────────────────

    def snapshot(self) -> int:
        """
        Create state snapshot for revert.

        The event log is append-only, so it is recorded by length and
        truncated on revert instead of being copied.

        Returns:
            Snapshot id to pass to revert() or release()
        """
        tables = {name: copy.deepcopy(getattr(self, name)) for name in _SNAPSHOT_FIELDS}
        self._snapshots.append((tables, len(self.events)))
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """
        Restore state to *snapshot_id* and drop it with every newer snapshot.
        """
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")

        tables, event_count = self._snapshots[snapshot_id]
        for name, value in tables.items():
            setattr(self, name, value)
        del self.events[event_count:]

        self._snapshots = self._snapshots[:snapshot_id]

    def release(self, snapshot_id: int) -> None:
        """Discard *snapshot_id* (and newer ones) after a successful request."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
        self._snapshots = self._snapshots[:snapshot_id]

    @property
    def snapshot_depth(self) -> int:
        return len(self._snapshots)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Persistable layout. Events are not part of durable state."""
        return {
            "schemaVersion": STATE_SCHEMA_VERSION,
            "owner": self.owner,
            "parameters": self.parameters.to_dict(),
            "deployedAt": self.deployed_at,
            "lastTimestamp": self.last_timestamp,
            **self.treasury.to_dict(),
            "memberCount": self.member_count,
            "proposalCount": self.proposal_count,
            "members": [m.to_dict() for m in self.members],
            "proposals": [p.to_dict() for p in self.proposals],
            "votes": [v.to_dict() for v in self.votes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceState":
        version = data.get("schemaVersion", STATE_SCHEMA_VERSION)
        if version != STATE_SCHEMA_VERSION:
            raise ConfigurationError(f"Unsupported state schema version: {version}")

        last_timestamp = data.get("lastTimestamp")
        return cls(
            owner=data["owner"],
            parameters=GovernanceParameters.from_dict(data.get("parameters", {})),
            deployed_at=int(data.get("deployedAt", 0)),
            members=MembershipRegistry([Member.from_dict(m) for m in data.get("members", [])]),
            proposals=ProposalBook(
                [Proposal.from_dict(p) for p in data.get("proposals", [])],
                next_id=int(data.get("proposalCount", 0)),
            ),
            votes=VoteLedger([VoteRecord.from_dict(v) for v in data.get("votes", [])]),
            treasury=Treasury(Decimal(data.get("balance", "0"))),
            last_timestamp=int(last_timestamp) if last_timestamp is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"<GovernanceState owner={self.owner} members={self.member_count} "
            f"proposals={self.proposal_count} balance={self.balance}>"
        )
