"""
Governance Requests

Wire-level request and response envelopes the host uses to route
transactions into the engine. A request names a method from the external
interface table (``addMember``, ``vote``, ``executeProposal`` ...), carries
the authenticated caller and the logical timestamp, and its parameters.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Methods that change state; everything else is a read-only query
MUTATING_METHODS = frozenset({
    "addMember",
    "removeMember",
    "createProposal",
    "vote",
    "executeProposal",
    "withdraw",
    "receive",
})

QUERY_METHODS = frozenset({
    "getProposalDetails",
    "isMember",
    "hasVoted",
    "getVote",
    "proposalStatus",
    "owner",
    "memberCount",
    "proposalCount",
    "parameters",
    "balance",
})


@dataclass
class Request:
    """A single request delivered by the host in total order."""

    method: str
    caller: str = ""
    timestamp: int = 0
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Request":
        return cls(
            method=data.get("method", ""),
            caller=data.get("caller", ""),
            timestamp=data.get("timestamp", 0),
            params=data.get("params") or {},
        )

    @property
    def is_mutating(self) -> bool:
        return self.method in MUTATING_METHODS


@dataclass
class Response:
    """Outcome of a request: either ``result`` or an ``error`` payload."""

    ok: bool = True
    result: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, result: Any = None) -> "Response":
        return cls(ok=True, result=result)

    @classmethod
    def failure(cls, code: str, message: str, reason: Optional[str] = None) -> "Response":
        error: Dict[str, Any] = {"code": code, "message": message}
        if reason is not None:
            error["reason"] = reason
        return cls(ok=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {"ok": self.ok}
        if self.error is not None:
            response["error"] = self.error
        else:
            response["result"] = self.result
        return response

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
