"""
Treasury

Holds the shared pool of funds. Incoming transfers are accepted from anyone;
outgoing transfers go through an injected TransferFn supplied by the host,
which reports success or failure of the actual movement of funds.

Balance arithmetic runs at DECIMAL_PRECISION digits with Inexact trapped,
so a credit or debit either lands exactly or is refused.
"""

from decimal import Decimal, Inexact, localcontext
from typing import Any, Callable, Dict

from ..constants import DECIMAL_PRECISION
from ..exceptions import GovernanceError
from ..logger import get_logger

logger = get_logger(__name__)

# (recipient, amount) -> True on confirmed delivery
TransferFn = Callable[[str, Decimal], bool]


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InsufficientBalanceError(GovernanceError):
    """Raised when the treasury cannot cover an outgoing amount."""
    code = "InsufficientBalance"


class InvalidAmountError(GovernanceError):
    """Raised for negative, malformed or unrepresentable amounts."""
    code = "InvalidAmount"


# ══════════════════════════════════════════════════════════════════════
#  TREASURY
# ══════════════════════════════════════════════════════════════════════

def exact_add(a: Decimal, b: Decimal) -> Decimal:
    """a + b at DECIMAL_PRECISION digits; raises InvalidAmountError if rounded."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        ctx.traps[Inexact] = True
        try:
            return a + b
        except Inexact as e:
            raise InvalidAmountError(
                f"{a} + {b} exceeds {DECIMAL_PRECISION} significant digits"
            ) from e


def exact_sub(a: Decimal, b: Decimal) -> Decimal:
    """a - b at DECIMAL_PRECISION digits; raises InvalidAmountError if rounded."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        ctx.traps[Inexact] = True
        try:
            return a - b
        except Inexact as e:
            raise InvalidAmountError(
                f"{a} - {b} exceeds {DECIMAL_PRECISION} significant digits"
            ) from e


class Treasury:
    """Balance bookkeeping for the governed pool."""

    def __init__(self, balance: Decimal = Decimal("0")):
        if balance < 0:
            raise InvalidAmountError("Treasury balance cannot be negative")
        self._balance = balance

    @property
    def balance(self) -> Decimal:
        return self._balance

    def credit(self, amount: Decimal) -> Decimal:
        """Add an incoming amount. Zero is accepted and changes nothing."""
        if amount < 0:
            raise InvalidAmountError(f"Incoming amount cannot be negative, got {amount}")
        self._balance = exact_add(self._balance, amount)
        logger.debug(f"Treasury credit value={amount} (balance={self._balance})")
        return self._balance

    def require_funds(self, amount: Decimal) -> None:
        if amount > self._balance:
            raise InsufficientBalanceError(
                f"Treasury balance {self._balance} < requested {amount}"
            )

    def debit(self, amount: Decimal) -> Decimal:
        if amount < 0:
            raise InvalidAmountError(f"Outgoing amount cannot be negative, got {amount}")
        self.require_funds(amount)
        self._balance = exact_sub(self._balance, amount)
        logger.debug(f"Treasury debit value={amount} (balance={self._balance})")
        return self._balance

    def to_dict(self) -> Dict[str, Any]:
        return {"balance": str(self._balance)}

    def __repr__(self) -> str:
        return f"<Treasury balance={self._balance}>"
