"""Admin router for scholar payouts and connected-account health."""
from fastapi import APIRouter, Depends, HTTPException, status

from uniclips.models.user import User
from uniclips.auth.dependencies import admin_required
from uniclips.schemas.connect import ScholarsAccountHealthResponse
from uniclips.schemas.earnings import (
    ManualPayoutRequest, PayoutResponse, PayoutListResponse, ScholarEarningsResponse
)
from uniclips.services.earnings import EarningsReconciler
from uniclips.services.ledger import LedgerStore, get_ledger
from uniclips.services.payouts import PayoutService
from uniclips.services.stripe_processor import StripeProcessor, get_processor

router = APIRouter()


@router.post("/api/admin/stripe-connect/payout", response_model=PayoutResponse)
async def create_manual_payout(
    request: ManualPayoutRequest,
    current_user: User = Depends(admin_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """Transfer an arbitrary amount to an onboarded scholar."""
    payout = await PayoutService(ledger, processor).create_manual_payout(
        scholar_user_id=request.scholar_user_id,
        amount=request.amount,
        currency=request.currency,
        description=request.description,
    )
    return PayoutResponse.model_validate(payout)


@router.get("/api/admin/stripe-connect/scholars", response_model=ScholarsAccountHealthResponse)
async def list_scholar_accounts(
    current_user: User = Depends(admin_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """
    Connected-account health for every approved scholar.

    Reads live from Stripe when it is configured, otherwise returns the
    cached flags with ``source = "cached"``.
    """
    return await EarningsReconciler(ledger, processor).scholars_account_health()


@router.get("/api/admin/stripe-connect/payouts/{scholar_id}", response_model=PayoutListResponse)
async def list_scholar_payouts(
    scholar_id: str,
    current_user: User = Depends(admin_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """Payout history of one scholar, newest first."""
    payouts = await PayoutService(ledger, processor).list_payouts(scholar_id)
    return PayoutListResponse(payouts=[PayoutResponse.model_validate(p) for p in payouts])


@router.get("/api/admin/scholars/{scholar_id}/earnings", response_model=ScholarEarningsResponse)
async def get_scholar_earnings(
    scholar_id: str,
    current_user: User = Depends(admin_required),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """Earnings of any scholar, as the scholar would see them."""
    if not await ledger.get_scholar_profile(scholar_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scholar not found")
    return await EarningsReconciler(ledger, processor).scholar_earnings(scholar_id)
