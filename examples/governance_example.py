"""
Governance Engine Example

Walks a small DAO through one proposal: admit members, fund the treasury,
propose a grant, vote, wait out the time lock, execute, and persist the
resulting state to SQLite.
"""

import asyncio
from decimal import Decimal

from qdao.config import load_config
from qdao.database_sqlite import StateStore
from qdao.governance import ExecutionNotReadyError, GovernanceEngine, Request
from qdao.metrics import GovernanceMetrics


OWNER = '0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0'
MEMBER_1 = '0xPQ' + '11' * 32
MEMBER_2 = '0xPQ' + '22' * 32
GRANTEE = '0x5FbDB2315678afecb367f032d93F642f64180aa3'


def host_transfer(recipient, amount):
    """Stand-in for the host ledger: always confirms delivery."""
    print(f"  host: sent {amount} to {recipient}")
    return True


def example_lifecycle(engine):
    """Example: Drive one proposal from creation to payout."""

    engine.add_member(engine.owner, MEMBER_1, now=1)
    engine.add_member(engine.owner, MEMBER_2, now=1)
    engine.receive(GRANTEE, Decimal('500'), now=2)

    proposal = engine.create_proposal(engine.owner, 'Audit grant', Decimal('120'), GRANTEE, now=10)
    pid = proposal.proposal_id
    print(f"Proposal #{pid} voting closes at t={proposal.voting_deadline}")

    engine.vote(engine.owner, pid, True, now=20)
    engine.vote(MEMBER_1, pid, True, now=30)
    engine.vote(MEMBER_2, pid, False, now=40)

    ready_at = proposal.voting_deadline + engine.proposal_execution_delay + 1
    for now in (proposal.voting_deadline - 1, ready_at - 1, ready_at):
        blocker = engine.check_execution(pid, now)
        print(f"t={now}: {engine.proposal_status(pid, now).name} "
              f"({blocker.reason if isinstance(blocker, ExecutionNotReadyError) else 'ready'})")

    executed = engine.execute_proposal(MEMBER_1, pid, now=ready_at)
    print(f"Executed: {executed.to_dict()}")
    print(f"Treasury balance: {engine.balance}")


def example_wire_requests(engine):
    """Example: Route requests the way a host transport would."""

    for request in (
        Request(method='isMember', params={'address': MEMBER_2}),
        Request(method='getProposalDetails', params={'proposalId': 0}),
        Request(method='addMember', caller=MEMBER_1, timestamp=engine.state.last_timestamp, params={'address': GRANTEE}),
    ):
        print(f"{request.method}: {engine.handle(request).to_json()}")


async def example_persistence(engine, db_path):
    """Example: Save the engine state and load it back."""

    async with await StateStore.create(db_path) as store:
        await store.save(engine.state)
        restored = await store.load()

    print(f"Restored: {restored}")


async def main():
    """Run all examples."""

    config = load_config()
    config.validate()

    config.configure_logging()

    metrics = GovernanceMetrics() if config.metrics.enabled else None
    engine = GovernanceEngine.create(
        owner=config.governance.owner or OWNER,
        transfer_fn=host_transfer,
        parameters=config.to_parameters(),
        now=0,
        metrics=metrics,
    )

    print("=== Proposal lifecycle ===")
    example_lifecycle(engine)

    print("\n=== Wire requests ===")
    example_wire_requests(engine)

    print("\n=== Persistence ===")
    await example_persistence(engine, config.database.sqlite.path)

    if metrics:
        print("\n=== Metrics ===")
        print(metrics.expose())


if __name__ == '__main__':
    asyncio.run(main())
