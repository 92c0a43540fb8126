"""Tests for the tiered fee schedule and revenue split."""
import pytest

from uniclips.services.fees import (
    FeeCalculator, platform_fee_percent, proportional_earnings, split_charge, split_for_sale
)
from uniclips.services.ledger import LedgerStore


def test_lower_tier_below_threshold():
    assert platform_fee_percent(0) == 30
    assert platform_fee_percent(98) == 30


def test_hundredth_sale_still_lower_tier():
    # 99 completed sales before it
    assert platform_fee_percent(99) == 30


def test_hundred_and_first_sale_upper_tier():
    assert platform_fee_percent(100) == 50
    assert platform_fee_percent(2500) == 50


def test_six_euro_bundle_split_at_threshold():
    split = split_for_sale(600, 99)
    assert (split.platform_share, split.creator_share) == (180, 420)

    split = split_for_sale(600, 100)
    assert (split.platform_share, split.creator_share) == (300, 300)


def test_split_rounds_platform_half_up_and_preserves_total():
    split = split_charge(999, 30)
    assert split.platform_share == 300
    assert split.creator_share == 699

    split = split_charge(5, 50)
    assert split.platform_share == 3
    assert split.creator_share == 2
    assert split.total == 5


def test_split_of_one_cent():
    split = split_charge(1, 30)
    assert split.platform_share == 0
    assert split.creator_share == 1


def test_split_rejects_negative_total():
    with pytest.raises(ValueError):
        split_charge(-1, 30)


def test_proportional_earnings_zero_sales():
    split = proportional_earnings(0, 0)
    assert split.creator_earnings == 0
    assert split.platform_fee == 0

    # Revenue reported without a sales count falls in the lower tier
    split = proportional_earnings(1000, 0)
    assert split.creator_earnings == 700
    assert split.platform_fee == 300
    assert split.above_threshold_revenue == 0


def test_proportional_earnings_below_threshold():
    split = proportional_earnings(6000, 10)
    assert split.creator_earnings == 4200
    assert split.platform_fee == 1800
    assert split.above_threshold_revenue == 0


def test_proportional_earnings_at_threshold_is_all_lower_tier():
    split = proportional_earnings(60000, 100)
    assert split.creator_earnings == 42000


def test_proportional_earnings_spanning_threshold():
    # 200 equal sales: half at 70%, half at 50%
    split = proportional_earnings(120000, 200)
    assert split.below_threshold_revenue == 60000
    assert split.above_threshold_revenue == 60000
    assert split.creator_earnings == 42000 + 30000
    assert split.creator_earnings + split.platform_fee == 120000


def test_proportional_earnings_matches_replay_for_equal_prices():
    # 101 sales at 600: 100 x 420 + 1 x 300
    split = proportional_earnings(600 * 101, 101)
    assert split.creator_earnings == 42300


@pytest.mark.asyncio
async def test_quote_reads_live_sales_count(test_db, learner, scholar, subject, add_sales):
    calculator = FeeCalculator(LedgerStore(test_db))

    await add_sales(99, subject_id=subject.uuid, scholar_id=scholar.uuid, buyer_id=learner.uuid)
    split, prior = await calculator.quote(subject.uuid, scholar.uuid, 600)
    assert prior == 99
    assert split.platform_percent == 30
    assert split.creator_share == 420

    await add_sales(1, subject_id=subject.uuid, scholar_id=scholar.uuid, buyer_id=learner.uuid, prefix="pi_more")
    split, prior = await calculator.quote(subject.uuid, scholar.uuid, 600)
    assert prior == 100
    assert split.platform_percent == 50
    assert split.creator_share == 300
