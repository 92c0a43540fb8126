"""Stripe Connect router for scholar onboarding and earnings."""
from fastapi import APIRouter, Depends

from uniclips.models.user import User
from uniclips.auth.dependencies import scholar_required
from uniclips.schemas.connect import (
    ConnectOnboardResponse, ConnectStatusResponse, ConnectDashboardLinkResponse
)
from uniclips.schemas.earnings import ScholarEarningsResponse
from uniclips.services.connect import ConnectService
from uniclips.services.earnings import EarningsReconciler
from uniclips.services.ledger import LedgerStore, get_ledger
from uniclips.services.stripe_processor import StripeProcessor, get_processor

router = APIRouter()


@router.post("/api/stripe-connect/onboard", response_model=ConnectOnboardResponse)
async def create_onboard_link(
    current_user: User = Depends(scholar_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """
    Create a Stripe Express account and an Account Link for onboarding.

    - Reuses the scholar's existing account when there is one
    - Returns the URL for the frontend to redirect to
    """
    url, account_id = await ConnectService(ledger, processor).create_onboarding_link(current_user)
    return ConnectOnboardResponse(url=url, account_id=account_id)


@router.get("/api/stripe-connect/status", response_model=ConnectStatusResponse)
async def get_connect_status(
    current_user: User = Depends(scholar_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """
    Current state of the scholar's connected account.

    An account Stripe no longer knows about is cleared locally and
    reported as not connected.
    """
    return await ConnectService(ledger, processor).account_status(current_user)


@router.get("/api/stripe-connect/dashboard-link", response_model=ConnectDashboardLinkResponse)
async def get_dashboard_link(
    current_user: User = Depends(scholar_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """Login link to the scholar's Stripe Express dashboard."""
    url = await ConnectService(ledger, processor).dashboard_link(current_user)
    return ConnectDashboardLinkResponse(url=url)


@router.get("/api/stripe-connect/earnings", response_model=ScholarEarningsResponse)
async def get_my_earnings(
    current_user: User = Depends(scholar_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """Lifetime and this-month earnings with the balance still owed."""
    return await EarningsReconciler(ledger, processor).scholar_earnings(current_user.uuid)
