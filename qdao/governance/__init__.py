"""
QDAO Member Governance

Provides:
  - Member / MembershipRegistry                      (membership.py)
  - Proposal / ProposalBook / ProposalStatus         (proposals.py)
  - VoteRecord / VoteLedger                          (voting.py)
  - Execution precondition checks                    (execution.py)
  - Treasury / TransferFn                            (treasury.py)
  - GovernanceParameters / GovernanceState           (state.py)
  - Event records                                    (events.py)
  - Request / Response envelopes                     (requests.py)
  - GovernanceEngine                                 (engine.py)
"""

from .membership import (
    AlreadyMemberError,
    Member,
    MembershipRegistry,
    NotAMemberError,
    UnauthorizedError,
)
from .proposals import (
    InvalidProposalError,
    Proposal,
    ProposalBook,
    ProposalStatus,
    UnknownProposalError,
)
from .voting import (
    DuplicateVoteError,
    InvalidVoteError,
    VoteLedger,
    VoteRecord,
    VotingClosedError,
)
from .execution import (
    AlreadyExecutedError,
    ExecutionDelayPendingError,
    ExecutionNotReadyError,
    MajorityNotReachedError,
    QuorumNotReachedError,
    TransferFailedError,
    VotingStillOpenError,
)
from .treasury import (
    InsufficientBalanceError,
    InvalidAmountError,
    Treasury,
    TransferFn,
)
from .events import (
    NewMemberEvent,
    NewProposalEvent,
    ProposalExecutedEvent,
    RemovedMemberEvent,
    VoteCastedEvent,
)
from .state import GovernanceParameters, GovernanceState
from .requests import Request, Response
from .engine import GovernanceEngine

__all__ = [
    # Membership
    "AlreadyMemberError",
    "Member",
    "MembershipRegistry",
    "NotAMemberError",
    "UnauthorizedError",
    # Proposals
    "InvalidProposalError",
    "Proposal",
    "ProposalBook",
    "ProposalStatus",
    "UnknownProposalError",
    # Voting
    "DuplicateVoteError",
    "InvalidVoteError",
    "VoteLedger",
    "VoteRecord",
    "VotingClosedError",
    # Execution
    "AlreadyExecutedError",
    "ExecutionDelayPendingError",
    "ExecutionNotReadyError",
    "MajorityNotReachedError",
    "QuorumNotReachedError",
    "TransferFailedError",
    "VotingStillOpenError",
    # Treasury
    "InsufficientBalanceError",
    "InvalidAmountError",
    "Treasury",
    "TransferFn",
    # Events
    "NewMemberEvent",
    "NewProposalEvent",
    "ProposalExecutedEvent",
    "RemovedMemberEvent",
    "VoteCastedEvent",
    # State & engine
    "GovernanceParameters",
    "GovernanceState",
    "Request",
    "Response",
    "GovernanceEngine",
]
