"""
QDAO Exceptions

Base exception classes for the QDAO governance engine. Request-level errors
live next to the component that raises them (membership, proposals, voting,
execution, treasury) and all derive from GovernanceError.
"""

from typing import Any, Dict, Optional


class QDAOException(Exception):
    """Base exception for QDAO."""
    pass


class ConfigurationError(QDAOException):
    """Configuration error."""
    pass


class GovernanceError(QDAOException):
    """
    Base class for every error a governance request can fail with.

    ``code`` is the stable, caller-facing error name. Subclasses that need
    to distinguish several causes under one code set ``reason`` as well.
    """
    code: str = "GovernanceError"
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "code": self.code,
            "message": str(self),
        }
        if self.reason is not None:
            result["reason"] = self.reason
        return result


class InvalidAddressError(GovernanceError):
    """Invalid address format."""
    code = "InvalidAddress"


class InvalidTimestampError(GovernanceError):
    """Logical clock went backwards or is malformed."""
    code = "InvalidTimestamp"
