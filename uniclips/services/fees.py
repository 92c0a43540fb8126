"""Tiered platform fee and revenue split.

Fee schedule
------------
The platform fee for a bundle sale depends on how many completed bundle
sales the scholar already has for that subject:

1. Fewer than ``FEE_TIER_THRESHOLD`` (100) prior sales: 30% platform fee,
   70% to the scholar.  The comparison is strict, so the 100th sale
   (99 prior) is still billed at 30%.
2. From the 101st sale on: 50% platform fee, 50% to the scholar.

The count is read at calculation time, never from a cached value.

Aggregate earnings
------------------
For reporting over a history that spans the threshold we do not replay each
sale.  Revenue is apportioned by count: ``threshold / total_sales`` of it is
treated as lower-tier revenue and the remainder as upper-tier revenue, each
share is reduced by its fee and the two results summed.  This is exact when
every sale has the same price and an approximation otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

FEE_TIER_THRESHOLD = 100
LOWER_TIER_PLATFORM_PERCENT = 30
UPPER_TIER_PLATFORM_PERCENT = 50


@dataclass(frozen=True)
class FeeSplit:
    """Split of one charge. Amounts are integer cents."""

    platform_percent: int
    creator_percent: int
    platform_share: int
    creator_share: int

    @property
    def total(self) -> int:
        return self.platform_share + self.creator_share


@dataclass(frozen=True)
class EarningsSplit:
    """Split of an aggregate revenue figure. Amounts are integer cents."""

    revenue: int
    creator_earnings: int
    platform_fee: int
    below_threshold_revenue: int
    above_threshold_revenue: int


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def platform_fee_percent(prior_sales: int) -> int:
    """Platform fee percentage for a sale, given the completed sales before it."""
    if prior_sales < FEE_TIER_THRESHOLD:
        return LOWER_TIER_PLATFORM_PERCENT
    return UPPER_TIER_PLATFORM_PERCENT


def split_charge(total: int, platform_percent: int) -> FeeSplit:
    """Split ``total`` cents into platform and creator shares.

    The platform share is rounded half-up; the creator receives the rest so
    the two always add up to the charge.
    """
    if total < 0:
        raise ValueError("total must not be negative")
    platform_share = _round_half_up(Decimal(total) * Decimal(platform_percent) / Decimal(100))
    return FeeSplit(
        platform_percent=platform_percent,
        creator_percent=100 - platform_percent,
        platform_share=platform_share,
        creator_share=total - platform_share,
    )


def split_for_sale(total: int, prior_sales: int) -> FeeSplit:
    """Fee tier lookup and split in one step."""
    return split_charge(total, platform_fee_percent(prior_sales))


def proportional_earnings(total_revenue: int, total_sales: int) -> EarningsSplit:
    """Scholar earnings over a sales history, apportioned across the fee tiers.

    Parameters
    ----------
    total_revenue:
        Gross revenue of all sales, in cents.
    total_sales:
        Number of sales that produced ``total_revenue``.

    Returns
    -------
    EarningsSplit
        With no sales the default (lower tier) split is applied to whatever
        revenue was passed in, so this never divides by zero.
    """
    revenue = Decimal(total_revenue)
    lower_creator = Decimal(100 - LOWER_TIER_PLATFORM_PERCENT) / Decimal(100)
    upper_creator = Decimal(100 - UPPER_TIER_PLATFORM_PERCENT) / Decimal(100)

    if total_sales <= FEE_TIER_THRESHOLD:
        below, above = revenue, Decimal(0)
    else:
        below = revenue * Decimal(FEE_TIER_THRESHOLD) / Decimal(total_sales)
        above = revenue - below

    creator_earnings = _round_half_up(below * lower_creator + above * upper_creator)
    below_cents = _round_half_up(below)
    return EarningsSplit(
        revenue=total_revenue,
        creator_earnings=creator_earnings,
        platform_fee=total_revenue - creator_earnings,
        below_threshold_revenue=below_cents,
        above_threshold_revenue=total_revenue - below_cents,
    )


class FeeCalculator:
    """Binds the fee schedule to the live sales counter in the ledger."""

    def __init__(self, ledger):
        self.ledger = ledger

    async def quote(self, subject_id: str, scholar_id: str, total: int) -> tuple[FeeSplit, int]:
        """Return the split for the next sale of this bundle and the prior sales count."""
        prior_sales = await self.ledger.count_completed_bundle_sales(subject_id, scholar_id)
        return split_for_sale(total, prior_sales), prior_sales
