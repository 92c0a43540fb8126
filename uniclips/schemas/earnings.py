"""Schemas for scholar earnings and payouts."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class SalesFigures(BaseModel):
    """Sales counts and revenue (cents) for one period."""

    video_sales: int = 0
    video_revenue: int = 0
    bundle_sales: int = 0
    bundle_revenue: int = 0
    total_sales: int = 0
    total_revenue: int = 0
    scholar_earnings: int = 0
    platform_fee: int = 0


class EarningsSummary(BaseModel):
    lifetime: SalesFigures
    this_month: SalesFigures
    total_paid: int = Field(..., description="Completed payouts in cents")
    payout_count: int
    pending_balance: int = Field(..., description="Earnings not yet paid out, never negative")
    recorded_creator_share: int = Field(..., description="Sum of creator shares fixed at bundle checkout")
    sales_awaiting_transfer: int


class VideoSales(BaseModel):
    id: str
    title: str
    subject: Optional[str] = None
    price: int
    sales_count: int
    revenue: int


class ScholarEarningsResponse(BaseModel):
    scholar_id: str
    currency: str = "eur"
    summary: EarningsSummary
    sales_by_video: list[VideoSales]


class ManualPayoutRequest(BaseModel):
    scholar_user_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Amount in cents")
    currency: str = Field(default="eur", min_length=3, max_length=3)
    description: Optional[str] = None


class PayoutResponse(BaseModel):
    uuid: str
    scholar_user_id: str
    transfer_ref: Optional[str] = None
    source_payment_ref: Optional[str] = None
    amount: int
    currency: str
    status: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayoutListResponse(BaseModel):
    payouts: list[PayoutResponse]
