"""Scholar earnings reconciliation against completed payouts."""
import logging
from datetime import datetime
from typing import Optional

from uniclips.config import settings
from uniclips.schemas.connect import ScholarsAccountHealthResponse
from uniclips.schemas.earnings import (
    EarningsSummary, SalesFigures, ScholarEarningsResponse, VideoSales
)
from uniclips.services.connect import select_account_strategy
from uniclips.services.fees import proportional_earnings
from uniclips.services.ledger import LedgerStore
from uniclips.services.stripe_processor import StripeProcessor

logger = logging.getLogger(__name__)


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def sales_figures(video_sales: int, video_revenue: int, bundle_sales: int, bundle_revenue: int) -> SalesFigures:
    """Combine video and bundle sales and apply the tiered split to the whole history."""
    total_sales = video_sales + bundle_sales
    total_revenue = video_revenue + bundle_revenue
    split = proportional_earnings(total_revenue, total_sales)
    return SalesFigures(
        video_sales=video_sales,
        video_revenue=video_revenue,
        bundle_sales=bundle_sales,
        bundle_revenue=bundle_revenue,
        total_sales=total_sales,
        total_revenue=total_revenue,
        scholar_earnings=split.creator_earnings,
        platform_fee=split.platform_fee,
    )


def pending_balance(earnings: int, total_paid: int) -> int:
    """What is still owed. Manual payouts can exceed earnings; that is never reported as negative."""
    return max(0, earnings - total_paid)


class EarningsReconciler:
    """Per-scholar earnings and the connected-account overview for admins."""

    def __init__(self, ledger: LedgerStore, processor: StripeProcessor):
        self.ledger = ledger
        self.processor = processor

    async def scholar_earnings(self, scholar_id: str, now: Optional[datetime] = None) -> ScholarEarningsResponse:
        now = now or datetime.utcnow()
        since = month_start(now)

        video_count, video_revenue = await self.ledger.video_sales_totals(scholar_id)
        bundle_count, bundle_revenue, recorded_creator = await self.ledger.bundle_sales_totals(scholar_id)
        month_video_count, month_video_revenue = await self.ledger.video_sales_totals(scholar_id, since=since)
        month_bundle_count, month_bundle_revenue, _ = await self.ledger.bundle_sales_totals(scholar_id, since=since)
        total_paid, payout_count = await self.ledger.payout_totals(scholar_id)
        awaiting = await self.ledger.count_sales_awaiting_transfer(scholar_id)

        lifetime = sales_figures(video_count, video_revenue, bundle_count, bundle_revenue)
        this_month = sales_figures(month_video_count, month_video_revenue, month_bundle_count, month_bundle_revenue)

        rows = await self.ledger.video_sales_breakdown(scholar_id)
        sales_by_video = [
            VideoSales(
                id=row.uuid,
                title=row.title,
                subject=row.subject_name,
                price=row.price,
                sales_count=row.sales_count or 0,
                revenue=(row.sales_count or 0) * row.price,
            )
            for row in rows
        ]

        return ScholarEarningsResponse(
            scholar_id=scholar_id,
            currency=settings.CURRENCY,
            summary=EarningsSummary(
                lifetime=lifetime,
                this_month=this_month,
                total_paid=total_paid,
                payout_count=payout_count,
                pending_balance=pending_balance(lifetime.scholar_earnings, total_paid),
                recorded_creator_share=recorded_creator,
                sales_awaiting_transfer=awaiting,
            ),
            sales_by_video=sales_by_video,
        )

    async def scholars_account_health(self) -> ScholarsAccountHealthResponse:
        """Connected-account state for every approved scholar.

        With Stripe configured each scholar costs one sequential API round
        trip; otherwise the cached flags are returned and marked as such.
        """
        strategy = select_account_strategy(self.ledger, self.processor)
        scholars = []
        for user, profile in await self.ledger.approved_scholars():
            scholars.append(await strategy.health(user, profile))
        return ScholarsAccountHealthResponse(source=strategy.source, scholars=scholars)
