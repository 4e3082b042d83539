"""
Governance Events

Frozen records emitted by successful state transitions. Each carries the
logical timestamp of the request that produced it; ``to_dict`` uses the
wire event names consumed by off-chain indexers.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class NewMemberEvent:
    """Emitted when the owner admits a member."""
    member: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "NewMember",
            "member": self.member,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RemovedMemberEvent:
    """Emitted when the owner removes a member."""
    member: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RemovedMember",
            "member": self.member,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class NewProposalEvent:
    """Emitted on proposal creation."""
    proposal_id: int
    proposer: str
    description: str
    value: Decimal
    recipient: str
    voting_deadline: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "NewProposal",
            "proposalId": self.proposal_id,
            "proposer": self.proposer,
            "description": self.description,
            "value": str(self.value),
            "recipient": self.recipient,
            "votingDeadline": self.voting_deadline,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoteCastedEvent:
    """Emitted for every accepted vote."""
    proposal_id: int
    voter: str
    support: bool
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteCasted",
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "support": self.support,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProposalExecutedEvent:
    """Emitted only after the payout transfer has been confirmed."""
    proposal_id: int
    recipient: str
    value: Decimal
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalExecuted",
            "proposalId": self.proposal_id,
            "recipient": self.recipient,
            "value": str(self.value),
            "timestamp": self.timestamp,
        }


GovernanceEvent = Union[
    NewMemberEvent,
    RemovedMemberEvent,
    NewProposalEvent,
    VoteCastedEvent,
    ProposalExecutedEvent,
]


def events_for_proposal(
    events: List[GovernanceEvent],
    proposal_id: int,
) -> List[GovernanceEvent]:
    """Filter *events* down to those that reference *proposal_id*."""
    return [
        e for e in events
        if getattr(e, "proposal_id", None) == proposal_id
    ]


def event_name(event: GovernanceEvent) -> Optional[str]:
    return event.to_dict().get("event")
