"""
Request Dispatch Test Suite

Drives the engine through GovernanceEngine.handle() the way a host routes
wire requests: camelCase method names, authenticated caller, logical
timestamp and a params mapping.
"""

import json
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from qdao.governance import GovernanceEngine, GovernanceParameters, Request
from qdao.governance.requests import MUTATING_METHODS, QUERY_METHODS


ALICE = "0xPQ" + "A1" * 32
BOB = "0xPQ" + "B2" * 32
CAROL = "0xPQ" + "C3" * 32
DAVE = "0xPQ" + "D4" * 32


@pytest.fixture
def transfers():
    return []


@pytest.fixture
def engine(transfers):
    def transfer(recipient, amount):
        transfers.append((recipient, amount))
        return True

    return GovernanceEngine.create(
        owner=ALICE,
        transfer_fn=transfer,
        parameters=GovernanceParameters(3, 100, 50),
        now=0,
    )


def call(engine, method, caller=ALICE, timestamp=0, **params):
    return engine.handle(Request(method=method, caller=caller, timestamp=timestamp, params=params))


class TestDispatch:

    def test_add_member(self, engine):
        resp = call(engine, "addMember", address=BOB)
        assert resp.ok
        assert resp.result == {"event": "NewMember", "member": BOB, "timestamp": 0}
        assert call(engine, "isMember", address=BOB).result is True
        assert call(engine, "memberCount").result == 2

    def test_guard_violation_is_error_payload(self, engine):
        resp = call(engine, "addMember", caller=BOB, address=CAROL)
        assert not resp.ok
        assert resp.error["code"] == "Unauthorized"
        assert "reason" not in resp.error
        # engine stays available
        assert call(engine, "addMember", address=CAROL).ok

    def test_unknown_method(self, engine):
        resp = call(engine, "selfDestruct")
        assert resp.error["code"] == "MethodNotFound"

    def test_every_declared_method_is_routed(self, engine):
        for method in sorted(MUTATING_METHODS | QUERY_METHODS):
            resp = call(engine, method)
            assert resp.ok or resp.error["code"] != "MethodNotFound", method

    def test_missing_param(self, engine):
        resp = call(engine, "addMember")
        assert resp.error["code"] == "InvalidParams"

    def test_bad_proposal_id(self, engine):
        resp = call(engine, "getProposalDetails", proposalId="abc")
        assert resp.error["code"] == "InvalidParams"

    def test_full_lifecycle(self, engine, transfers):
        call(engine, "addMember", address=BOB)
        call(engine, "addMember", address=CAROL)
        assert call(engine, "receive", caller=DAVE, amount="500").result == "500"

        created = call(
            engine, "createProposal",
            description="Grant", value="120", recipient=DAVE,
        )
        assert created.ok
        pid = created.result["proposalId"]
        assert created.result["votingDeadline"] == 100

        for voter in (ALICE, BOB, CAROL):
            assert call(engine, "vote", caller=voter, proposalId=pid, support=True).ok

        assert call(engine, "hasVoted", proposalId=pid, address=BOB).result is True
        assert call(engine, "getVote", proposalId=pid, address=BOB).result is True
        assert call(engine, "proposalStatus", timestamp=120, proposalId=pid).result == "TIMELOCKED"

        early = call(engine, "executeProposal", caller=DAVE, timestamp=120, proposalId=pid)
        assert early.error["code"] == "ExecutionNotReady"
        assert early.error["reason"] == "delay_pending"

        done = call(engine, "executeProposal", caller=DAVE, timestamp=151, proposalId=pid)
        assert done.ok
        assert done.result["event"] == "ProposalExecuted"
        assert done.result["value"] == "120"
        assert len(transfers) == 1

        again = call(engine, "executeProposal", caller=DAVE, timestamp=152, proposalId=pid)
        assert again.error["code"] == "AlreadyExecuted"

        details = call(engine, "getProposalDetails", proposalId=pid).result
        assert details["executed"] is True
        assert details["executedAt"] == 151
        assert call(engine, "balance").result == "380"

    def test_withdraw(self, engine, transfers):
        call(engine, "receive", caller=DAVE, amount="10")
        assert call(engine, "withdraw", amount="4").result == "6"
        assert transfers[-1][0] == ALICE
        assert call(engine, "withdraw", caller=BOB, amount="1").error["code"] == "Unauthorized"

    def test_clock_regression_payload(self, engine):
        call(engine, "addMember", timestamp=10, address=BOB)
        resp = call(engine, "addMember", timestamp=5, address=CAROL)
        assert resp.error["code"] == "InvalidTimestamp"

    def test_queries(self, engine):
        assert call(engine, "owner").result == ALICE
        assert call(engine, "proposalCount").result == 0
        assert call(engine, "parameters").result == {
            "minimumQuorum": 3,
            "votingDuration": 100,
            "proposalExecutionDelay": 50,
        }
        blank = call(engine, "getProposalDetails", proposalId=5).result
        assert blank["value"] == "0"
        assert blank["executed"] is False

    def test_responses_are_json(self, engine):
        call(engine, "addMember", address=BOB)
        resp = call(engine, "createProposal", description="d", value="1", recipient=DAVE)
        assert json.loads(resp.to_json())["result"]["event"] == "NewProposal"
