# Overview: Pluggable pricing (discount/tax) and refund (restocking fee) policies.

"""
Pricing and refund policies

Discount, tax and restocking-fee formulas are store configuration, not core
logic. The cart and the return processor accept any object implementing the
protocols below; the defaults apply no adjustment at all.

Rates are basis points (1 bps = 0.01%) with nearest-cent, half-up rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


def apply_bps(amount_cents: int, bps: int) -> int:
    """amount * bps / 10_000, rounded half-up to the nearest cent."""
    return (amount_cents * bps + 5_000) // 10_000


def allocate_cents(amount_cents: int, weights: Sequence[int]) -> list[int]:
    """
    Split amount_cents across weights proportionally (largest remainder).

    The shares always sum to amount_cents. With all-zero weights the whole
    amount lands on the first share.
    """
    weights = list(weights)
    if not weights:
        return []
    base = sum(weights)
    if base <= 0:
        return [amount_cents] + [0] * (len(weights) - 1)

    shares = [amount_cents * w // base for w in weights]
    leftover = amount_cents - sum(shares)
    by_remainder = sorted(
        range(len(weights)),
        key=lambda i: (-(amount_cents * weights[i] % base), i),
    )
    for i in by_remainder[:leftover]:
        shares[i] += 1
    return shares


def prorate_cents(total_cents: int, quantity: int, before: int, taken: int) -> int:
    """
    Portion of total_cents for units before+1 .. before+taken out of quantity.

    Consecutive portions add up to total_cents exactly once all units are taken.
    """
    return total_cents * (before + taken) // quantity - total_cents * before // quantity


class PricingPolicy(Protocol):
    def discount_cents(self, subtotal_cents: int, lines: Sequence) -> int: ...

    def tax_cents(self, taxable_cents: int, lines: Sequence) -> int: ...


class RefundPolicy(Protocol):
    def fee_cents(self, gross_refund_cents: int, lines: Sequence) -> int: ...


class NoAdjustmentPolicy:
    """Grand total equals subtotal."""

    def discount_cents(self, subtotal_cents: int, lines: Sequence) -> int:
        return 0

    def tax_cents(self, taxable_cents: int, lines: Sequence) -> int:
        return 0


@dataclass(frozen=True)
class RatePricingPolicy:
    """Cart-wide percentage discount, then tax on the discounted amount."""
    discount_bps: int = 0
    tax_bps: int = 0

    def __post_init__(self):
        if not 0 <= self.discount_bps <= 10_000:
            raise ValueError("discount_bps must be between 0 and 10000")
        if self.tax_bps < 0:
            raise ValueError("tax_bps must not be negative")

    def discount_cents(self, subtotal_cents: int, lines: Sequence) -> int:
        return apply_bps(subtotal_cents, self.discount_bps)

    def tax_cents(self, taxable_cents: int, lines: Sequence) -> int:
        return apply_bps(taxable_cents, self.tax_bps)


class FullRefundPolicy:
    """Refund exactly what the customer paid per returned unit."""

    def fee_cents(self, gross_refund_cents: int, lines: Sequence) -> int:
        return 0


@dataclass(frozen=True)
class RestockingFeePolicy:
    """Percentage and/or flat restocking fee; never larger than the refund."""
    fee_bps: int = 0
    flat_fee_cents: int = 0

    def __post_init__(self):
        if self.fee_bps < 0 or self.flat_fee_cents < 0:
            raise ValueError("restocking fees must not be negative")

    def fee_cents(self, gross_refund_cents: int, lines: Sequence) -> int:
        fee = apply_bps(gross_refund_cents, self.fee_bps) + self.flat_fee_cents
        return min(fee, gross_refund_cents)


def pricing_policy_from_config(config) -> PricingPolicy:
    discount_bps = int(config.get("POS_DISCOUNT_RATE_BPS", 0) or 0)
    tax_bps = int(config.get("POS_TAX_RATE_BPS", 0) or 0)
    if not discount_bps and not tax_bps:
        return NoAdjustmentPolicy()
    return RatePricingPolicy(discount_bps=discount_bps, tax_bps=tax_bps)


def refund_policy_from_config(config) -> RefundPolicy:
    fee_bps = int(config.get("POS_RESTOCKING_FEE_BPS", 0) or 0)
    flat = int(config.get("POS_RESTOCKING_FEE_CENTS", 0) or 0)
    if not fee_bps and not flat:
        return FullRefundPolicy()
    return RestockingFeePolicy(fee_bps=fee_bps, flat_fee_cents=flat)
