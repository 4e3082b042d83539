"""
Governance Engine

The single component that owns all governance state and behavior. The host
delivers requests one at a time, in total order, each with an authenticated
caller and a logical timestamp. Every mutating request runs inside a state
snapshot: guards are checked first, mutations follow, and any failure
reverts the state to the snapshot before the error reaches the caller.

Responsibilities:
    - Membership administration by the owner
    - Proposal creation and one-member-one-vote voting
    - Time-locked execution of approved fund transfers
    - Treasury receipts and owner withdrawals
    - Read-only queries and wire-level request dispatch
"""

import copy
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..address import normalize_address
from ..exceptions import GovernanceError, InvalidAddressError, InvalidTimestampError
from ..constants import INVALID_PARAMS, METHOD_NOT_FOUND
from ..logger import get_logger
from ..metrics import GovernanceMetrics
from .events import (
    GovernanceEvent,
    NewMemberEvent,
    NewProposalEvent,
    ProposalExecutedEvent,
    RemovedMemberEvent,
    VoteCastedEvent,
    events_for_proposal,
)
from .execution import TransferFailedError, find_execution_blocker, require_executable
from .membership import UnauthorizedError
from .proposals import InvalidProposalError, Proposal, ProposalStatus, parse_amount
from .requests import MUTATING_METHODS, QUERY_METHODS, Request, Response
from .state import GovernanceParameters, GovernanceState
from .treasury import InvalidAmountError, TransferFn

logger = get_logger(__name__)


class GovernanceEngine:
    """
    Member-governed treasury state machine.

    Usage:
        engine = GovernanceEngine.create(
            owner=ALICE,
            parameters=GovernanceParameters(3, 100, 50),
            now=0,
            transfer_fn=host.send,
        )
        engine.add_member(ALICE, BOB, now=1)
    """

    def __init__(
        self,
        state: GovernanceState,
        transfer_fn: TransferFn,
        metrics: Optional[GovernanceMetrics] = None,
    ):
        """
        Args:
            state:        Governance state (fresh or loaded from a store)
            transfer_fn:  Callable(recipient, amount) → bool moving funds out
            metrics:      Optional collector updated as requests are applied
        """
        self._state = state
        self._transfer_fn = transfer_fn
        self._metrics = metrics
        self._handlers: Dict[str, Callable[[Request], Any]] = self._build_handlers()
        self._observe()

    @classmethod
    def create(
        cls,
        owner: str,
        transfer_fn: TransferFn,
        parameters: Optional[GovernanceParameters] = None,
        now: int = 0,
        metrics: Optional[GovernanceMetrics] = None,
    ) -> "GovernanceEngine":
        """
        Construct a new engine. The constructing caller becomes the owner and
        the first member.
        """
        owner = normalize_address(owner)
        _validate_timestamp(now)
        params = parameters or GovernanceParameters()

        state = GovernanceState(owner=owner, parameters=params, deployed_at=now)
        state.members.add(owner, now)
        state.events.append(NewMemberEvent(member=owner, timestamp=now))
        state.last_timestamp = now

        engine = cls(state, transfer_fn, metrics)
        logger.info(
            f"Governance engine deployed by {owner} at t={now} "
            f"(quorum={params.minimum_quorum}, voting={params.voting_duration}, "
            f"delay={params.proposal_execution_delay})"
        )
        return engine

    # ── Transactions ──────────────────────────────────────────────────

    @contextmanager
    def _transaction(self, action: str, now: int) -> Iterator[None]:
        """
        Apply a request atomically.

        The clock is validated before the snapshot; everything inside the
        block is reverted if the block raises.
        """
        if self._metrics:
            self._metrics.requests_total.inc()

        snapshot_id = self._state.snapshot()
        try:
            self._check_clock(now)
            yield
            self._state.last_timestamp = now
        except GovernanceError as e:
            self._state.revert(snapshot_id)
            if self._metrics:
                self._metrics.requests_rejected_total.inc()
            if isinstance(e, TransferFailedError):
                logger.error(f"{action} rolled back at t={now}: {e.code} {e}")
            else:
                logger.warning(f"{action} rejected at t={now}: {e.code} {e}")
            raise
        except Exception:
            self._state.revert(snapshot_id)
            if self._metrics:
                self._metrics.requests_rejected_total.inc()
            logger.exception(f"{action} failed unexpectedly at t={now}; state reverted")
            raise
        else:
            self._state.release(snapshot_id)
            self._observe()

    def _check_clock(self, now: int) -> None:
        _validate_timestamp(now)
        last = self._state.last_timestamp
        if last is not None and now < last:
            raise InvalidTimestampError(
                f"Timestamp {now} is earlier than last accepted timestamp {last}"
            )

    def _observe(self) -> None:
        if self._metrics:
            self._metrics.observe_state(
                self._state.member_count,
                self._state.proposal_count,
                self._state.balance,
            )

    def _emit(self, event: GovernanceEvent) -> GovernanceEvent:
        self._state.events.append(event)
        return event

    # ── Guards ────────────────────────────────────────────────────────

    def _require_owner(self, caller: str) -> None:
        if caller != self._state.owner:
            raise UnauthorizedError(f"{caller} is not the owner")

    def _require_member(self, caller: str) -> None:
        if not self._state.members.is_member(caller):
            raise UnauthorizedError(f"{caller} is not a member")

    def _transfer(self, recipient: str, amount: Decimal) -> None:
        """Invoke the host transfer; any failure becomes TransferFailedError."""
        try:
            delivered = self._transfer_fn(recipient, amount)
        except Exception as e:
            if self._metrics:
                self._metrics.transfer_failures_total.inc()
            raise TransferFailedError(
                f"Transfer of {amount} to {recipient} raised: {e}"
            ) from e

        if not delivered:
            if self._metrics:
                self._metrics.transfer_failures_total.inc()
            raise TransferFailedError(f"Transfer of {amount} to {recipient} failed")

    # ── Membership ────────────────────────────────────────────────────

    def add_member(self, caller: str, address: str, now: int) -> NewMemberEvent:
        """Owner admits *address* as a member."""
        with self._transaction("addMember", now):
            caller = normalize_address(caller)
            self._require_owner(caller)
            address = normalize_address(address)
            self._state.members.add(address, now)
            event = self._emit(NewMemberEvent(member=address, timestamp=now))

        logger.info(f"NewMember {address} at t={now} (members={self.member_count})")
        return event

    def remove_member(self, caller: str, address: str, now: int) -> RemovedMemberEvent:
        """
        Owner removes *address*. Votes it already cast and proposals it
        authored stay valid.
        """
        with self._transaction("removeMember", now):
            caller = normalize_address(caller)
            self._require_owner(caller)
            address = normalize_address(address)
            self._state.members.remove(address)
            event = self._emit(RemovedMemberEvent(member=address, timestamp=now))

        logger.info(f"RemovedMember {address} at t={now} (members={self.member_count})")
        return event

    # ── Proposals ─────────────────────────────────────────────────────

    def create_proposal(
        self,
        caller: str,
        description: str,
        value: Any,
        recipient: str,
        now: int,
    ) -> NewProposalEvent:
        """
        Member proposes transferring *value* to *recipient*.

        No balance check happens here; funds are checked at execution.
        """
        with self._transaction("createProposal", now):
            caller = normalize_address(caller)
            self._require_member(caller)

            try:
                amount = parse_amount(value)
            except (InvalidOperation, ValueError) as e:
                raise InvalidProposalError(f"Invalid proposal value {value!r}: {e}") from e
            try:
                recipient = normalize_address(recipient)
            except InvalidAddressError as e:
                raise InvalidProposalError(f"Invalid recipient: {e}") from e

            proposal = self._state.proposals.create(
                proposer=caller,
                description=description,
                value=amount,
                recipient=recipient,
                created_at=now,
                voting_duration=self._state.parameters.voting_duration,
            )
            event = self._emit(NewProposalEvent(
                proposal_id=proposal.id,
                proposer=caller,
                description=description,
                value=amount,
                recipient=recipient,
                voting_deadline=proposal.voting_deadline,
                timestamp=now,
            ))

        if self._metrics:
            self._metrics.proposals_created_total.inc()
        logger.info(
            f"NewProposal #{event.proposal_id} by {caller}: value={amount} → {recipient} "
            f"(deadline t={event.voting_deadline})"
        )
        return event

    def vote(self, caller: str, proposal_id: int, support: bool, now: int) -> VoteCastedEvent:
        """Member casts a permanent for/against vote before the deadline."""
        with self._transaction("vote", now):
            caller = normalize_address(caller)
            self._require_member(caller)
            proposal = self._state.proposals.get(proposal_id)
            self._state.votes.cast(proposal, caller, support, now)
            event = self._emit(VoteCastedEvent(
                proposal_id=proposal.id,
                voter=caller,
                support=support,
                timestamp=now,
            ))

        if self._metrics:
            self._metrics.votes_cast_total.inc()
        logger.info(
            f"VoteCasted on #{proposal_id} by {caller}: "
            f"{'FOR' if support else 'AGAINST'} at t={now}"
        )
        return event

    # ── Execution ─────────────────────────────────────────────────────

    def execute_proposal(self, caller: str, proposal_id: int, now: int) -> ProposalExecutedEvent:
        """
        Pay out an approved proposal. Open to any caller.

        ``executed`` is set before the transfer so a re-entrant attempt sees
        the proposal as executed; a failed transfer reverts the flag along
        with everything else.
        """
        with self._transaction("executeProposal", now):
            caller = normalize_address(caller)
            params = self._state.parameters
            proposal = self._state.proposals.get(proposal_id)
            require_executable(
                proposal,
                now,
                params.minimum_quorum,
                params.proposal_execution_delay,
            )
            self._state.treasury.require_funds(proposal.value)

            recipient, value = proposal.recipient, proposal.value
            proposal.executed = True
            self._state.treasury.debit(value)

            self._transfer(recipient, value)

            # The transfer callback may have re-entered and reverted nested
            # snapshots, which replaces the state objects.
            proposal = self._state.proposals.get(proposal_id)
            proposal.executed_at = now
            event = self._emit(ProposalExecutedEvent(
                proposal_id=proposal_id,
                recipient=recipient,
                value=value,
                timestamp=now,
            ))

        if self._metrics:
            self._metrics.proposals_executed_total.inc()
        logger.info(
            f"ProposalExecuted #{proposal_id} by {caller}: value={value} → {recipient} "
            f"at t={now} (balance={self.balance})"
        )
        return event

    # ── Treasury ──────────────────────────────────────────────────────

    def withdraw(self, caller: str, amount: Any, now: int) -> Decimal:
        """Owner withdraws *amount* to itself. Returns the remaining balance."""
        with self._transaction("withdraw", now):
            caller = normalize_address(caller)
            self._require_owner(caller)
            value = _positive_amount(amount)
            self._state.treasury.debit(value)
            self._transfer(self._state.owner, value)

        logger.info(f"Withdrawal of value={value} to owner {caller} at t={now}")
        return self.balance

    def receive(self, sender: str, amount: Any, now: int) -> Decimal:
        """
        Accept an incoming transfer from any source. A zero amount is a no-op
        credit. Returns the new balance.
        """
        with self._transaction("receive", now):
            value = _parse_treasury_amount(amount)
            self._state.treasury.credit(value)

        logger.debug(f"Received value={value} from {sender} at t={now}")
        return self.balance

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def state(self) -> GovernanceState:
        return self._state

    @property
    def owner(self) -> str:
        return self._state.owner

    @property
    def member_count(self) -> int:
        return self._state.member_count

    @property
    def proposal_count(self) -> int:
        return self._state.proposal_count

    @property
    def parameters(self) -> GovernanceParameters:
        return self._state.parameters

    @property
    def minimum_quorum(self) -> int:
        return self._state.parameters.minimum_quorum

    @property
    def voting_duration(self) -> int:
        return self._state.parameters.voting_duration

    @property
    def proposal_execution_delay(self) -> int:
        return self._state.parameters.proposal_execution_delay

    @property
    def balance(self) -> Decimal:
        return self._state.balance

    @property
    def events(self) -> List[GovernanceEvent]:
        return list(self._state.events)

    def events_for(self, proposal_id: int) -> List[GovernanceEvent]:
        return events_for_proposal(self._state.events, proposal_id)

    def get_proposal_details(self, proposal_id: int) -> Proposal:
        """
        Copy of the proposal record. Ids never issued yield a zero-valued
        record rather than an error.
        """
        proposal = self._state.proposals.find(proposal_id)
        if proposal is None:
            return Proposal.blank(proposal_id)
        return copy.copy(proposal)

    def is_member(self, address: str) -> bool:
        try:
            address = normalize_address(address)
        except InvalidAddressError:
            return False
        return self._state.members.is_member(address)

    def has_voted(self, proposal_id: int, address: str) -> bool:
        try:
            address = normalize_address(address)
        except InvalidAddressError:
            return False
        return self._state.votes.has_voted(proposal_id, address)

    def get_vote(self, proposal_id: int, address: str) -> Optional[bool]:
        """The recorded choice, or None if *address* never voted."""
        try:
            address = normalize_address(address)
        except InvalidAddressError:
            return None
        record = self._state.votes.get(proposal_id, address)
        return record.support if record else None

    def proposal_status(self, proposal_id: int, now: int) -> ProposalStatus:
        proposal = self._state.proposals.get(proposal_id)
        params = self._state.parameters
        return proposal.status(now, params.minimum_quorum, params.proposal_execution_delay)

    def check_execution(self, proposal_id: int, now: int) -> Optional[GovernanceError]:
        """Dry run: first unmet governance precondition, or None."""
        proposal = self._state.proposals.get(proposal_id)
        params = self._state.parameters
        return find_execution_blocker(
            proposal, now, params.minimum_quorum, params.proposal_execution_delay
        )

    # ── Request dispatch ──────────────────────────────────────────────

    def _build_handlers(self) -> Dict[str, Callable[[Request], Any]]:
        handlers: Dict[str, Callable[[Request], Any]] = {
            "addMember": lambda r: self.add_member(
                r.caller, r.params["address"], r.timestamp).to_dict(),
            "removeMember": lambda r: self.remove_member(
                r.caller, r.params["address"], r.timestamp).to_dict(),
            "createProposal": lambda r: self.create_proposal(
                r.caller,
                r.params.get("description", ""),
                r.params["value"],
                r.params["recipient"],
                r.timestamp,
            ).to_dict(),
            "vote": lambda r: self.vote(
                r.caller, int(r.params["proposalId"]), r.params["support"], r.timestamp
            ).to_dict(),
            "executeProposal": lambda r: self.execute_proposal(
                r.caller, int(r.params["proposalId"]), r.timestamp).to_dict(),
            "withdraw": lambda r: str(self.withdraw(r.caller, r.params["amount"], r.timestamp)),
            "receive": lambda r: str(self.receive(r.caller, r.params["amount"], r.timestamp)),
            "getProposalDetails": lambda r: self.get_proposal_details(
                int(r.params["proposalId"])).to_dict(),
            "isMember": lambda r: self.is_member(r.params["address"]),
            "hasVoted": lambda r: self.has_voted(
                int(r.params["proposalId"]), r.params["address"]),
            "getVote": lambda r: self.get_vote(
                int(r.params["proposalId"]), r.params["address"]),
            "proposalStatus": lambda r: self.proposal_status(
                int(r.params["proposalId"]), r.timestamp).name,
            "owner": lambda r: self.owner,
            "memberCount": lambda r: self.member_count,
            "proposalCount": lambda r: self.proposal_count,
            "parameters": lambda r: self.parameters.to_dict(),
            "balance": lambda r: str(self.balance),
        }

        unrouted = (MUTATING_METHODS | QUERY_METHODS) ^ set(handlers)
        if unrouted:
            raise RuntimeError(
                f"Handler table out of sync with request methods: {sorted(unrouted)}"
            )
        return handlers

    def handle(self, request: Request) -> Response:
        """
        Route a wire request to its transition or query.

        Guard violations come back as error payloads; the engine stays
        available for the next request.
        """
        handler = self._handlers.get(request.method)
        if handler is None:
            return Response.failure(METHOD_NOT_FOUND, f"Method not found: {request.method}")

        try:
            return Response.success(handler(request))
        except GovernanceError as e:
            return Response.failure(e.code, str(e), e.reason)
        except (KeyError, TypeError, ValueError) as e:
            return Response.failure(INVALID_PARAMS, f"Invalid params for {request.method}: {e}")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "memberCount": self.member_count,
            "proposalCount": self.proposal_count,
            "parameters": self.parameters.to_dict(),
            "balance": str(self.balance),
            "events": len(self._state.events),
        }

    def __repr__(self) -> str:
        return (
            f"<GovernanceEngine owner={self.owner} members={self.member_count} "
            f"proposals={self.proposal_count} balance={self.balance}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

def _validate_timestamp(now: Any) -> None:
    if isinstance(now, bool) or not isinstance(now, int):
        raise InvalidTimestampError(f"Timestamp must be an integer, got {now!r}")
    if now < 0:
        raise InvalidTimestampError(f"Timestamp cannot be negative, got {now}")


def _parse_treasury_amount(amount: Any) -> Decimal:
    try:
        value = parse_amount(amount)
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Invalid amount {amount!r}: {e}") from e
    if value < 0:
        raise InvalidAmountError(f"Amount cannot be negative, got {value}")
    return value


def _positive_amount(amount: Any) -> Decimal:
    value = _parse_treasury_amount(amount)
    if value == 0:
        raise InvalidAmountError("Amount must be positive, got 0")
    return value
