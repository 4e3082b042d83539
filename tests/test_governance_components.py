"""
Governance Component Test Suite

Coverage:
  - MembershipRegistry add / remove / count
  - Proposal derived properties, status, serialization; ProposalBook ids
  - VoteLedger tally, deadline, duplicate detection
  - Execution precondition ordering
  - Treasury credit / debit
  - GovernanceState nested snapshots and dict round trip
  - Event records and request / response envelopes
"""

import json
import os
import sys
from decimal import Decimal, InvalidOperation

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from qdao.exceptions import ConfigurationError, GovernanceError
from qdao.governance import (
    AlreadyExecutedError,
    AlreadyMemberError,
    DuplicateVoteError,
    ExecutionDelayPendingError,
    GovernanceParameters,
    GovernanceState,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidProposalError,
    MajorityNotReachedError,
    MembershipRegistry,
    NewMemberEvent,
    NotAMemberError,
    Proposal,
    ProposalBook,
    ProposalExecutedEvent,
    ProposalStatus,
    QuorumNotReachedError,
    RemovedMemberEvent,
    Request,
    Response,
    Treasury,
    UnknownProposalError,
    VoteCastedEvent,
    VoteLedger,
    VotingClosedError,
    VotingStillOpenError,
)
from qdao.governance.events import event_name, events_for_proposal
from qdao.governance.execution import find_execution_blocker, require_executable
from qdao.governance.proposals import parse_amount


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "0xPQ" + "A1" * 32
BOB = "0xPQ" + "B2" * 32
CAROL = "0xPQ" + "C3" * 32
DAVE = "0xPQ" + "D4" * 32


def make_proposal(
    pid=0,
    value=Decimal("100"),
    created_at=0,
    duration=100,
    votes_for=0,
    votes_against=0,
    **kwargs,
) -> Proposal:
    """Helper to create a proposal record for testing."""
    return Proposal(
        id=pid,
        proposer=ALICE,
        description="Test proposal",
        value=value,
        recipient=DAVE,
        created_at=created_at,
        voting_deadline=created_at + duration,
        votes_for=votes_for,
        votes_against=votes_against,
        **kwargs,
    )


# ══════════════════════════════════════════════════════════════════════
#  MEMBERSHIP
# ══════════════════════════════════════════════════════════════════════


class TestMembershipRegistry:

    def test_add_and_count(self):
        reg = MembershipRegistry()
        member = reg.add(ALICE, 3)
        assert member.joined_at == 3
        assert reg.count == 1
        assert ALICE in reg
        assert reg.is_member(ALICE)

    def test_add_duplicate_raises(self):
        reg = MembershipRegistry()
        reg.add(ALICE, 0)
        with pytest.raises(AlreadyMemberError):
            reg.add(ALICE, 1)
        assert reg.count == 1

    def test_remove(self):
        reg = MembershipRegistry()
        reg.add(ALICE, 0)
        reg.add(BOB, 0)
        reg.remove(ALICE)
        assert reg.addresses() == [BOB]
        assert len(reg) == 1

    def test_remove_missing_raises(self):
        reg = MembershipRegistry()
        with pytest.raises(NotAMemberError):
            reg.remove(BOB)

    def test_to_dict(self):
        reg = MembershipRegistry()
        reg.add(ALICE, 5)
        assert reg.to_dict() == {
            "count": 1,
            "members": [{"address": ALICE, "joinedAt": 5}],
        }


# ══════════════════════════════════════════════════════════════════════
#  PROPOSALS
# ══════════════════════════════════════════════════════════════════════


class TestParseAmount:

    def test_accepts_decimal_int_str(self):
        assert parse_amount(Decimal("1.5")) == Decimal("1.5")
        assert parse_amount(7) == Decimal("7")
        assert parse_amount("0.001") == Decimal("0.001")

    def test_rejects_float(self):
        with pytest.raises(InvalidOperation):
            parse_amount(0.5)

    def test_rejects_bool(self):
        with pytest.raises(InvalidOperation):
            parse_amount(True)

    def test_rejects_non_finite(self):
        with pytest.raises(InvalidOperation):
            parse_amount("Infinity")
        with pytest.raises(InvalidOperation):
            parse_amount(Decimal("NaN"))

    def test_rejects_garbage_string(self):
        with pytest.raises(InvalidOperation):
            parse_amount("ten")

    def test_rejects_too_many_digits(self):
        assert parse_amount(10**77) == Decimal(10**77)
        with pytest.raises(InvalidOperation):
            parse_amount(10**78 + 1)


class TestProposal:

    def test_majority_is_strict(self):
        assert make_proposal(votes_for=2, votes_against=1).has_majority
        assert not make_proposal(votes_for=2, votes_against=2).has_majority
        assert not make_proposal().has_majority

    def test_quorum(self):
        p = make_proposal(votes_for=1, votes_against=2)
        assert p.total_votes == 3
        assert p.quorum_reached(3)
        assert not p.quorum_reached(4)

    def test_voting_window(self):
        p = make_proposal(created_at=10, duration=100)
        assert p.is_voting_open(109)
        assert not p.is_voting_open(110)
        assert p.execution_eta(50) == 160

    def test_status(self):
        p = make_proposal(votes_for=3)
        assert p.status(0, 3, 50) == ProposalStatus.VOTING
        assert p.status(100, 3, 50) == ProposalStatus.TIMELOCKED
        assert p.status(151, 3, 50) == ProposalStatus.EXECUTABLE
        assert p.status(151, 4, 50) == ProposalStatus.BLOCKED
        p.executed = True
        assert p.status(0, 3, 50) == ProposalStatus.EXECUTED

    def test_dict_round_trip(self):
        p = make_proposal(votes_for=2, votes_against=1, executed=True, executed_at=160)
        d = p.to_dict()
        assert d["value"] == "100"
        assert d["votingDeadline"] == 100
        assert json.dumps(d)
        assert Proposal.from_dict(d) == p

    def test_blank(self):
        p = Proposal.blank(9)
        assert p.id == 9
        assert p.value == Decimal("0")
        assert p.executed_at is None

    def test_repr(self):
        assert "#0" in repr(make_proposal())


class TestProposalBook:

    def test_sequential_ids(self):
        book = ProposalBook()
        p0 = book.create(ALICE, "a", Decimal("1"), DAVE, 0, 100)
        p1 = book.create(ALICE, "b", Decimal("2"), DAVE, 5, 100)
        assert (p0.id, p1.id) == (0, 1)
        assert p1.voting_deadline == 105
        assert book.count == 2

    def test_get_unknown_raises(self):
        book = ProposalBook()
        with pytest.raises(UnknownProposalError):
            book.get(0)
        assert book.find(0) is None
        assert not book.exists(0)

    def test_negative_value_raises(self):
        book = ProposalBook()
        with pytest.raises(InvalidProposalError):
            book.create(ALICE, "a", Decimal("-1"), DAVE, 0, 100)
        assert book.count == 0

    def test_non_text_description_raises(self):
        book = ProposalBook()
        with pytest.raises(InvalidProposalError, match="text"):
            book.create(ALICE, 42, Decimal("1"), DAVE, 0, 100)

    def test_restored_book_continues_ids(self):
        book = ProposalBook([make_proposal(pid=0), make_proposal(pid=1)], next_id=2)
        assert book.create(ALICE, "c", Decimal("1"), DAVE, 0, 100).id == 2
        assert [p.id for p in book] == [0, 1, 2]


# ══════════════════════════════════════════════════════════════════════
#  VOTING
# ══════════════════════════════════════════════════════════════════════


class TestVoteLedger:

    def test_cast_updates_tally(self):
        ledger = VoteLedger()
        p = make_proposal()
        ledger.cast(p, ALICE, True, 1)
        ledger.cast(p, BOB, False, 2)
        ledger.cast(p, CAROL, True, 3)
        assert (p.votes_for, p.votes_against) == (2, 1)
        assert ledger.voters(0) == {ALICE, BOB, CAROL}
        assert len(ledger.votes_on(0)) == 3

    def test_duplicate_raises(self):
        ledger = VoteLedger()
        p = make_proposal()
        ledger.cast(p, ALICE, True, 1)
        with pytest.raises(DuplicateVoteError):
            ledger.cast(p, ALICE, True, 2)
        assert p.votes_for == 1

    def test_closed_raises(self):
        ledger = VoteLedger()
        p = make_proposal(duration=10)
        with pytest.raises(VotingClosedError):
            ledger.cast(p, ALICE, True, 10)
        assert len(ledger) == 0

    def test_same_voter_on_different_proposals(self):
        ledger = VoteLedger()
        ledger.cast(make_proposal(pid=0), ALICE, True, 1)
        ledger.cast(make_proposal(pid=1), ALICE, False, 1)
        assert ledger.get(0, ALICE).support is True
        assert ledger.get(1, ALICE).support is False


# ══════════════════════════════════════════════════════════════════════
#  EXECUTION CHECKS
# ══════════════════════════════════════════════════════════════════════


class TestExecutionChecks:

    def test_executed_checked_before_timing(self):
        p = make_proposal(votes_for=3, executed=True)
        assert isinstance(find_execution_blocker(p, 0, 3, 50), AlreadyExecutedError)

    def test_timing_checked_before_tally(self):
        p = make_proposal()
        assert isinstance(find_execution_blocker(p, 100, 3, 50), VotingStillOpenError)
        assert isinstance(find_execution_blocker(p, 150, 3, 50), ExecutionDelayPendingError)
        assert isinstance(find_execution_blocker(p, 151, 3, 50), QuorumNotReachedError)

    def test_quorum_checked_before_majority(self):
        p = make_proposal(votes_for=1, votes_against=1)
        assert isinstance(find_execution_blocker(p, 151, 3, 50), QuorumNotReachedError)
        assert isinstance(find_execution_blocker(p, 151, 2, 50), MajorityNotReachedError)

    def test_executable(self):
        p = make_proposal(votes_for=2, votes_against=1)
        assert find_execution_blocker(p, 151, 3, 50) is None
        require_executable(p, 151, 3, 50)

    def test_require_raises(self):
        with pytest.raises(GovernanceError) as exc_info:
            require_executable(make_proposal(), 1, 3, 50)
        assert exc_info.value.to_dict()["reason"] == "voting_open"


# ══════════════════════════════════════════════════════════════════════
#  TREASURY
# ══════════════════════════════════════════════════════════════════════


class TestTreasuryBook:

    def test_credit_debit(self):
        t = Treasury()
        t.credit(Decimal("10"))
        assert t.debit(Decimal("4")) == Decimal("6")
        assert t.to_dict() == {"balance": "6"}

    def test_overdraw_raises(self):
        t = Treasury(Decimal("1"))
        with pytest.raises(InsufficientBalanceError):
            t.debit(Decimal("2"))
        assert t.balance == Decimal("1")

    def test_zero_credit_is_noop(self):
        t = Treasury(Decimal("3"))
        assert t.credit(Decimal("0")) == Decimal("3")

    def test_negative_credit_raises(self):
        with pytest.raises(InvalidAmountError):
            Treasury().credit(Decimal("-1"))

    def test_arithmetic_beyond_default_context_is_exact(self):
        t = Treasury(Decimal(10**40))
        t.credit(Decimal("0.5"))
        assert str(t.balance) == "1" + "0" * 40 + ".5"
        t.debit(Decimal("0.5"))
        assert t.balance == Decimal(10**40)

    def test_rounded_result_refused(self):
        t = Treasury(Decimal(10**77))
        with pytest.raises(InvalidAmountError):
            t.credit(Decimal("0.1"))
        assert t.balance == Decimal(10**77)

    def test_negative_opening_balance_raises(self):
        with pytest.raises(InvalidAmountError):
            Treasury(Decimal("-1"))


# ══════════════════════════════════════════════════════════════════════
#  STATE
# ══════════════════════════════════════════════════════════════════════


class TestGovernanceState:

    def _state(self):
        state = GovernanceState(owner=ALICE, parameters=GovernanceParameters(3, 100, 50))
        state.members.add(ALICE, 0)
        return state

    def test_parameters_validation(self):
        with pytest.raises(ConfigurationError):
            GovernanceParameters(voting_duration=True)
        with pytest.raises(ConfigurationError):
            GovernanceParameters(proposal_execution_delay="5")

    def test_parameters_are_frozen(self):
        params = GovernanceParameters()
        with pytest.raises(Exception):
            params.minimum_quorum = 10

    def test_nested_snapshots(self):
        state = self._state()
        outer = state.snapshot()
        state.members.add(BOB, 1)
        inner = state.snapshot()
        state.members.add(CAROL, 2)
        assert state.snapshot_depth == 2

        state.revert(inner)
        assert state.members.addresses() == [ALICE, BOB]
        assert state.snapshot_depth == 1

        state.revert(outer)
        assert state.members.addresses() == [ALICE]
        assert state.snapshot_depth == 0

    def test_release_keeps_changes(self):
        state = self._state()
        sid = state.snapshot()
        state.treasury.credit(Decimal("5"))
        state.release(sid)
        assert state.balance == Decimal("5")
        assert state.snapshot_depth == 0

    def test_revert_restores_events_and_clock(self):
        state = self._state()
        state.last_timestamp = 3
        sid = state.snapshot()
        state.events.append(NewMemberEvent(member=BOB, timestamp=4))
        state.last_timestamp = 4
        state.revert(sid)
        assert state.events == []
        assert state.last_timestamp == 3

    def test_revert_truncates_only_newer_events(self):
        state = self._state()
        log = state.events
        for t in range(50):
            log.append(NewMemberEvent(member=BOB, timestamp=t))
        sid = state.snapshot()
        log.append(RemovedMemberEvent(member=BOB, timestamp=50))
        state.revert(sid)
        assert state.events is log
        assert len(state.events) == 50
        assert all(isinstance(e, NewMemberEvent) for e in state.events)

    def test_dict_balance_comes_from_treasury(self):
        state = self._state()
        state.treasury.credit(Decimal("12.5"))
        assert state.to_dict()["balance"] == state.treasury.to_dict()["balance"] == "12.5"

    def test_invalid_snapshot_id(self):
        state = self._state()
        with pytest.raises(ValueError):
            state.revert(0)
        with pytest.raises(ValueError):
            state.release(3)

    def test_dict_round_trip(self):
        state = self._state()
        p = state.proposals.create(ALICE, "p", Decimal("7"), DAVE, 0, 100)
        state.votes.cast(p, ALICE, True, 1)
        state.treasury.credit(Decimal("9.5"))
        state.last_timestamp = 1

        restored = GovernanceState.from_dict(json.loads(json.dumps(state.to_dict())))
        assert restored.to_dict() == state.to_dict()
        assert restored.votes.get(0, ALICE).support is True
        assert restored.balance == Decimal("9.5")

    def test_unknown_schema_version_raises(self):
        data = self._state().to_dict()
        data["schemaVersion"] = 99
        with pytest.raises(ConfigurationError, match="schema"):
            GovernanceState.from_dict(data)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS & ENVELOPES
# ══════════════════════════════════════════════════════════════════════


class TestEventsAndEnvelopes:

    def test_event_helpers(self):
        events = [
            NewMemberEvent(member=BOB, timestamp=1),
            VoteCastedEvent(proposal_id=0, voter=BOB, support=True, timestamp=2),
            ProposalExecutedEvent(proposal_id=1, recipient=DAVE, value=Decimal("3"), timestamp=3),
        ]
        assert [event_name(e) for e in events] == ["NewMember", "VoteCasted", "ProposalExecuted"]
        assert events_for_proposal(events, 1) == [events[2]]

    def test_request_from_dict(self):
        req = Request.from_dict({
            "method": "vote",
            "caller": BOB,
            "timestamp": 5,
            "params": {"proposalId": 0, "support": True},
        })
        assert req.is_mutating
        assert req.params["support"] is True
        assert not Request(method="balance").is_mutating

    def test_response_payloads(self):
        ok = Response.success({"x": 1})
        assert ok.to_dict() == {"ok": True, "result": {"x": 1}}
        err = Response.failure("ExecutionNotReady", "wait", "delay_pending")
        assert json.loads(err.to_json()) == {
            "ok": False,
            "error": {"code": "ExecutionNotReady", "message": "wait", "reason": "delay_pending"},
        }
