"""Helper payout calculation.

Pure functions; currency values are rounded half-up to cents.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

from cleanslate.core.config import constants
from cleanslate.domain.directory import HelperPayoutConfig, PayoutMode


CENTS = Decimal("0.01")


def round_currency(value: float) -> float:
    """Round a monetary value half-up to two decimal places."""
    return float(Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP))


def compute_fee(*, price: float | None, mode: PayoutMode | str, value: float | None) -> float | None:
    """Compute a helper fee from the appointment price and a payout configuration.

    Args:
        price: Appointment price
        mode: FIXED (flat fee) or PERCENTAGE (share of price)
        value: Flat fee or percentage

    Returns:
        Fee rounded to cents and floored at zero, or None when the price is not
        a finite number (callers keep any previously stored fee)
    """
    if price is None or not math.isfinite(price):
        return None

    payout_value = value if value is not None and math.isfinite(value) else 0.0
    raw = price * payout_value / 100 if mode == PayoutMode.PERCENTAGE else payout_value
    return max(0.0, round_currency(raw))


def compute_fee_for(*, price: float | None, payout: HelperPayoutConfig) -> float | None:
    """Compute a fee from a helper's payout configuration."""
    return compute_fee(price=price, mode=payout.mode, value=payout.value)


def validate_helper_fee(
    fee: float,
    price: float,
    max_percentage: float = constants.MAX_HELPER_FEE_PERCENTAGE,
) -> tuple[bool, str | None]:
    """Validate a manually entered helper fee.

    Returns:
        (True, None) when valid, otherwise (False, reason)
    """
    if not math.isfinite(fee):
        return False, "Fee must be a number"
    if fee < 0:
        return False, "Fee cannot be negative"
    if price > 0 and fee > price * max_percentage / 100:
        return False, f"Fee cannot exceed {max_percentage:g}% of the price"
    return True, None


def format_fee_explanation(fee: float, price: float, mode: PayoutMode | str, value: float) -> str:
    """Describe how a fee was derived, e.g. "25% of $200.00 = $50.00"."""
    if mode == PayoutMode.PERCENTAGE:
        return f"{value:g}% of ${price:.2f} = ${fee:.2f}"
    return f"Fixed fee ${fee:.2f}"
