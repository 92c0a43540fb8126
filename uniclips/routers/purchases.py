"""Bundle checkout and purchase router for learners."""
import logging
from fastapi import APIRouter, Depends, Query

from uniclips.models.user import User
from uniclips.auth.dependencies import get_current_active_user
from uniclips.schemas.purchases import (
    SubjectCheckoutRequest, SubjectCheckoutResponse, SubjectConfirmRequest,
    SettlementResponse, PurchaseCheckResponse, SubjectPurchaseItem,
    SubjectPurchaseListResponse, VideoPaymentIntentRequest, VideoPaymentIntentResponse
)
from uniclips.services.checkout import CheckoutOrchestrator
from uniclips.services.ledger import LedgerStore, get_ledger
from uniclips.services.settlement import SettlementEngine, ALREADY_PROCESSED
from uniclips.services.stripe_processor import StripeProcessor, get_processor
from uniclips.models.bundle_sale import SaleStatus

logger = logging.getLogger(__name__)

router = APIRouter()

SETTLEMENT_MESSAGES = {
    SaleStatus.SETTLED: "Purchase completed",
    SaleStatus.TRANSFER_FAILED: "Purchase completed; scholar payout is pending",
    ALREADY_PROCESSED: "Purchase already processed",
}


@router.post("/api/purchases/subject/checkout", response_model=SubjectCheckoutResponse)
async def create_subject_checkout(
    request: SubjectCheckoutRequest,
    current_user: User = Depends(get_current_active_user),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """
    Start a hosted checkout for a subject bundle.

    - Price comes from the subject (or the platform default)
    - The fee split is quoted from the scholar's completed sales for the subject
    - Returns the Stripe Checkout URL to redirect the buyer to
    """
    orchestrator = CheckoutOrchestrator(ledger, processor)
    result = await orchestrator.create_checkout(
        buyer_id=current_user.uuid,
        subject_id=request.subject_id,
        scholar_id=request.scholar_id,
    )
    return SubjectCheckoutResponse(
        session_id=result.session_id,
        checkout_url=result.checkout_url,
        amount=result.amount,
        currency=result.currency,
        platform_fee_percent=result.split.platform_percent,
        platform_share=result.split.platform_share,
        creator_share=result.split.creator_share,
    )


@router.post("/api/purchases/subject/confirm", response_model=SettlementResponse)
async def confirm_subject_purchase(
    request: SubjectConfirmRequest,
    current_user: User = Depends(get_current_active_user),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """
    Settle a checkout the buyer has just returned from.

    The webhook settles the same payment; whichever arrives second gets
    ``already_processed``.
    """
    engine = SettlementEngine(ledger, processor)
    result = await engine.confirm_checkout_session(request.session_id, current_user.uuid)
    return SettlementResponse(
        success=True,
        status=result.status,
        message=SETTLEMENT_MESSAGES.get(result.status, "Purchase completed"),
        purchase_id=result.purchase_id,
    )


@router.get("/api/purchases/subject/check", response_model=PurchaseCheckResponse)
async def check_subject_purchase(
    subject_id: str = Query(...),
    scholar_id: str = Query(...),
    current_user: User = Depends(get_current_active_user),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """Whether the current user holds current access to a bundle."""
    orchestrator = CheckoutOrchestrator(ledger, processor)
    purchase = await orchestrator.check_purchase(current_user.uuid, subject_id, scholar_id)
    if not purchase:
        return PurchaseCheckResponse(has_purchased=False)
    return PurchaseCheckResponse(
        has_purchased=True,
        purchase_id=purchase.uuid,
        expires_at=purchase.expires_at,
    )


@router.get("/api/purchases/subjects", response_model=SubjectPurchaseListResponse)
async def list_subject_purchases(
    current_user: User = Depends(get_current_active_user),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """All bundle purchases of the current user, newest first."""
    rows = await CheckoutOrchestrator(ledger, processor).list_purchases(current_user.uuid)
    return SubjectPurchaseListResponse(purchases=[
        SubjectPurchaseItem(
            uuid=purchase.uuid,
            subject_id=purchase.subject_id,
            subject_name=subject_name,
            scholar_id=scholar.uuid,
            scholar_name=scholar.full_name,
            amount=purchase.amount,
            currency=purchase.currency,
            active=purchase.active,
            created_at=purchase.created_at,
            expires_at=purchase.expires_at,
        )
        for purchase, subject_name, scholar in rows
    ])


@router.post("/api/purchases/video/intent", response_model=VideoPaymentIntentResponse)
async def create_video_payment_intent(
    request: VideoPaymentIntentRequest,
    current_user: User = Depends(get_current_active_user),
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """Create a PaymentIntent for a single paid video."""
    orchestrator = CheckoutOrchestrator(ledger, processor)
    intent, amount = await orchestrator.create_video_payment_intent(current_user.uuid, request.video_id)
    return VideoPaymentIntentResponse(
        client_secret=intent.client_secret,
        amount=amount,
    )
