"""Schemas for bundle checkout and purchase endpoints."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class SubjectCheckoutRequest(BaseModel):
    """Request to start a bundle checkout."""

    subject_id: str = Field(..., min_length=1, description="UUID of the subject")
    scholar_id: str = Field(..., min_length=1, description="UUID of the scholar selling the bundle")


class SubjectCheckoutResponse(BaseModel):
    """Hosted checkout session plus the split that was quoted for it."""

    session_id: str = Field(..., description="Stripe Checkout Session ID")
    checkout_url: str = Field(..., description="URL to redirect the buyer to")
    amount: int = Field(..., description="Total charge in cents")
    currency: str = Field(default="eur", description="Currency code")
    platform_fee_percent: int
    platform_share: int = Field(..., description="Platform share in cents")
    creator_share: int = Field(..., description="Scholar share in cents")


class SubjectConfirmRequest(BaseModel):
    """Buyer-initiated confirmation after returning from checkout."""

    session_id: str = Field(..., min_length=1, description="Stripe Checkout Session ID")


class SettlementResponse(BaseModel):
    """Outcome of a settlement as seen by the buyer."""

    success: bool
    status: str = Field(..., description="settled | transfer_failed | already_processed")
    message: str
    purchase_id: Optional[str] = None


class PurchaseCheckResponse(BaseModel):
    has_purchased: bool
    purchase_id: Optional[str] = None
    expires_at: Optional[datetime] = None


class SubjectPurchaseItem(BaseModel):
    uuid: str
    subject_id: str
    subject_name: str
    scholar_id: str
    scholar_name: str
    amount: int
    currency: str
    active: bool
    created_at: datetime
    expires_at: Optional[datetime] = None


class SubjectPurchaseListResponse(BaseModel):
    purchases: list[SubjectPurchaseItem]


class VideoPaymentIntentRequest(BaseModel):
    video_id: str = Field(..., min_length=1)


class VideoPaymentIntentResponse(BaseModel):
    client_secret: str
    amount: int
    currency: str = "eur"
