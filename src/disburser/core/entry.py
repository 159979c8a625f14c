"""
Disbursement entry model.

Represents a single (recipient, amount) line from an entry list, and
parses the line-oriented entry format:

    0xabc...def,1.5
    0x123...789, 2
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, NewType, Union

from eth_utils import is_hex_address

from disburser.core.units import format_units, parse_amount

# Canonical lowercase "0x"-prefixed 42 character hex string.
Address = NewType("Address", str)

ADDRESS_LENGTH = 42


class InvalidEntry(ValueError):
    """Raised when an entry line cannot be parsed."""

    def __init__(self, line_number: int, line: str, reason: str):
        super().__init__(f"Invalid entry at line {line_number} ({reason}): {line}")
        self.line_number = line_number
        self.line = line
        self.reason = reason


def parse_address(text: str) -> Address:
    """
    Parse and canonicalize an account address.

    Args:
        text: Address text, any hex casing

    Returns:
        Lowercase address

    Raises:
        ValueError: If the text is not a 0x-prefixed 20-byte hex address
    """
    if not text.startswith("0x") or len(text) != ADDRESS_LENGTH:
        raise ValueError(f"Address must start with 0x and be {ADDRESS_LENGTH} characters: {text}")
    if not is_hex_address(text):
        raise ValueError(f"Address is not hex: {text}")
    return Address(text.lower())


@dataclass(frozen=True)
class Entry:
    """
    A single disbursement line.

    Attributes:
        recipient: Address receiving the tokens
        amount: Amount in minimal units
        line_number: 1-based line in the source list (0 if built in code)
    """

    recipient: Address
    amount: int
    line_number: int = 0

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError(f"Entry amount must be non-negative, got {self.amount}")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "recipient": self.recipient,
            "amount": self.amount,
            "amount_display": format_units(self.amount),
            "line_number": self.line_number,
        }


def parse_entry_line(line: str, line_number: int) -> Entry:
    """
    Parse one non-blank entry line.

    All whitespace is removed before the line is split on its comma.

    Raises:
        InvalidEntry: If the line is malformed
    """
    compact = "".join(line.split())
    fields = compact.split(",")
    if len(fields) != 2:
        raise InvalidEntry(line_number, line, "expected address,amount")

    try:
        recipient = parse_address(fields[0])
    except ValueError:
        raise InvalidEntry(line_number, line, "invalid address")

    try:
        amount = parse_amount(fields[1])
    except ValueError:
        raise InvalidEntry(line_number, line, "invalid amount")

    return Entry(recipient=recipient, amount=amount, line_number=line_number)


def parse_entries(text: str) -> List[Entry]:
    """
    Parse an entry list.

    Blank lines and lines starting with '#' are skipped. A single
    malformed line fails the whole list.

    Args:
        text: Contents of the entry list

    Returns:
        Entries in file order

    Raises:
        InvalidEntry: On the first malformed line
    """
    entries = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        entries.append(parse_entry_line(line, line_number))
    return entries


def load_entries(path: Union[str, Path]) -> List[Entry]:
    """Read and parse an entry list file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Entry list not found: {path}")
    return parse_entries(path.read_text(encoding="utf-8"))
