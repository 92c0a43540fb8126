"""Schemas for Stripe Connect onboarding endpoints."""
from typing import Optional
from pydantic import BaseModel, Field


class ConnectOnboardResponse(BaseModel):
    """Response with Stripe Account Link URL for onboarding."""

    url: str = Field(..., description="Stripe Account Link URL for hosted onboarding")
    account_id: str = Field(..., description="Stripe Connect account ID")


class ConnectStatusResponse(BaseModel):
    """Connected account state, live from Stripe or from the local cache."""

    connected: bool
    account_id: Optional[str] = None
    onboarding_complete: bool = False
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    country: Optional[str] = None
    currency: Optional[str] = None
    stripe_not_configured: bool = Field(False, description="True when values come from the local cache")


class ConnectDashboardLinkResponse(BaseModel):
    """Response with Stripe Express Dashboard login link."""

    url: str = Field(..., description="Stripe Express Dashboard login URL")


class ScholarAccountHealth(BaseModel):
    """One row of the admin connected-account overview."""

    user_id: str
    fname: str
    lname: str
    email: str
    stripe_account_id: Optional[str] = None
    stripe_status: str = Field(..., description="Action Required | Linked | Incomplete | Error")
    payouts_enabled: bool = False
    country: Optional[str] = None
    live: bool = Field(..., description="False when the status is the last known local state")


class ScholarsAccountHealthResponse(BaseModel):
    source: str = Field(..., description="live | cached")
    scholars: list[ScholarAccountHealth]
