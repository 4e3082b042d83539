"""
Time-Locked Execution Checks

A proposal can be executed once all of the following hold at ``now``:

    1. now > voting_deadline                      (voting closed)
    2. now > voting_deadline + execution_delay    (delay elapsed)
    3. not executed
    4. votes_for + votes_against >= minimum_quorum
    5. votes_for > votes_against

Every check runs before the engine mutates anything. A proposal that fails
(4) or (5) after voting closes stays pending; there is no rejected state.
"""

from typing import Optional

from ..exceptions import GovernanceError
from .proposals import Proposal


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class ExecutionNotReadyError(GovernanceError):
    """A timing or tally precondition for execution is unmet."""
    code = "ExecutionNotReady"
    reason = "not_ready"


class VotingStillOpenError(ExecutionNotReadyError):
    """now <= voting_deadline."""
    reason = "voting_open"


class ExecutionDelayPendingError(ExecutionNotReadyError):
    """Voting closed but the execution delay has not elapsed."""
    reason = "delay_pending"


class QuorumNotReachedError(ExecutionNotReadyError):
    """Fewer votes were cast than minimum_quorum."""
    reason = "quorum_not_met"


class MajorityNotReachedError(ExecutionNotReadyError):
    """votes_for does not strictly exceed votes_against."""
    reason = "majority_not_met"


class AlreadyExecutedError(GovernanceError):
    """Proposal payout already went through."""
    code = "AlreadyExecuted"


class TransferFailedError(GovernanceError):
    """The external transfer reported failure; the request was rolled back."""
    code = "TransferFailed"


# ══════════════════════════════════════════════════════════════════════
#  CHECKS
# ══════════════════════════════════════════════════════════════════════

def find_execution_blocker(
    proposal: Proposal,
    now: int,
    minimum_quorum: int,
    execution_delay: int,
) -> Optional[GovernanceError]:
    """
    Return the first unmet execution precondition, or None.

    An executed proposal reports AlreadyExecutedError regardless of time so
    a late retry is told the payout already happened.
    """
    if proposal.executed:
        return AlreadyExecutedError(f"Proposal #{proposal.id} was already executed")

    if now <= proposal.voting_deadline:
        return VotingStillOpenError(
            f"Voting on proposal #{proposal.id} is open until "
            f"t={proposal.voting_deadline} (now={now})"
        )

    eta = proposal.execution_eta(execution_delay)
    if now <= eta:
        return ExecutionDelayPendingError(
            f"Execution delay for proposal #{proposal.id} runs until t={eta} (now={now})"
        )

    if not proposal.quorum_reached(minimum_quorum):
        return QuorumNotReachedError(
            f"Proposal #{proposal.id} has {proposal.total_votes} votes, "
            f"quorum is {minimum_quorum}"
        )

    if not proposal.has_majority:
        return MajorityNotReachedError(
            f"Proposal #{proposal.id} has {proposal.votes_for} for vs "
            f"{proposal.votes_against} against"
        )

    return None


def require_executable(
    proposal: Proposal,
    now: int,
    minimum_quorum: int,
    execution_delay: int,
) -> None:
    """Raise the first unmet execution precondition, if any."""
    blocker = find_execution_blocker(proposal, now, minimum_quorum, execution_delay)
    if blocker is not None:
        raise blocker
