"""
Token unit conversion.

Amounts are carried as integers in minimal units (10^-18 of a token).
Human-entered amounts are the only decimal input and are truncated,
never rounded, when converted.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext

TOKEN_DECIMALS = 18
UNIT = 10 ** TOKEN_DECIMALS

# Settlement deltas are compared after dividing by this.
SETTLEMENT_PRECISION = 10 ** 15

# Largest amount a uint256 transfer argument can carry.
MAX_AMOUNT = 2 ** 256 - 1


def parse_amount(text: str) -> int:
    """
    Convert a human-entered token amount to minimal units.

    Args:
        text: Decimal string such as "1.5" or "2"

    Returns:
        Amount in minimal units, truncated below the smallest unit

    Raises:
        ValueError: If the text is not a finite, non-negative number that
            fits in a uint256 once scaled
    """
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a number: {text!r}")

    if not value.is_finite():
        raise ValueError(f"Not a finite number: {text!r}")
    if value < 0:
        raise ValueError(f"Negative amount: {text!r}")

    try:
        with localcontext() as ctx:
            ctx.prec = max(60, len(text) + TOKEN_DECIMALS + 2)
            scaled = int((value * UNIT).to_integral_value(rounding=ROUND_DOWN))
    except ArithmeticError:
        raise ValueError(f"Amount out of range: {text!r}")

    if scaled > MAX_AMOUNT:
        raise ValueError(f"Amount out of range: {text!r}")
    return scaled


def to_units(tokens: int) -> int:
    """Convert a whole number of tokens to minimal units."""
    return tokens * UNIT


def format_units(amount: int) -> str:
    """
    Render minimal units as a decimal token string.

    Trailing zeros of the fraction are dropped, and so is the dot
    when there is no fraction: 1500000000000000000 -> "1.5".
    """
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), UNIT)
    if frac == 0:
        return f"{sign}{whole}"
    digits = f"{frac:0{TOKEN_DECIMALS}d}".rstrip("0")
    return f"{sign}{whole}.{digits}"
