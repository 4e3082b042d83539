"""
QDAO Address Handling

The engine treats caller identities as opaque strings supplied by the host.
Two formats get special handling:
- Hex account addresses (0x + 40 hex): normalised to EIP-55 checksum form
- Post-Quantum addresses (0xPQ + 64 hex): upper-cased hash, PQ marker kept

Everything else passes through unchanged once it is a non-empty,
printable string.
"""

from eth_utils import is_hex_address, to_checksum_address

from .constants import HEX_ADDRESS_PATTERN, MAX_ADDRESS_LENGTH, PQ_ADDRESS_PATTERN
from .exceptions import InvalidAddressError


def normalize_address(address: str) -> str:
    """
    Return the canonical form of *address*.

    Raises:
        InvalidAddressError: if *address* is not a usable identity
    """
    if not isinstance(address, str):
        raise InvalidAddressError(f"Address must be a string, got {type(address).__name__}")

    address = address.strip()
    if not address:
        raise InvalidAddressError("Address cannot be empty")
    if len(address) > MAX_ADDRESS_LENGTH:
        raise InvalidAddressError(f"Address longer than {MAX_ADDRESS_LENGTH} characters")
    if not address.isprintable():
        raise InvalidAddressError("Address contains non-printable characters")

    if HEX_ADDRESS_PATTERN.match(address) and is_hex_address(address):
        return to_checksum_address(address)

    if PQ_ADDRESS_PATTERN.match(address):
        return "0xPQ" + address[4:].upper()

    return address


def is_valid_address(address: str) -> bool:
    """Check whether *address* would be accepted by normalize_address."""
    try:
        normalize_address(address)
    except InvalidAddressError:
        return False
    return True


def same_address(a: str, b: str) -> bool:
    """Compare two addresses by canonical form."""
    if not (is_valid_address(a) and is_valid_address(b)):
        return False
    return normalize_address(a) == normalize_address(b)
