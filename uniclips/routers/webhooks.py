"""Stripe webhook router: the authoritative settlement path."""
import logging
import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status

from uniclips.services.ledger import LedgerStore, get_ledger
from uniclips.services.settlement import PaymentConfirmation, SettlementEngine
from uniclips.services.stripe_processor import StripeProcessor, get_processor

logger = logging.getLogger(__name__)

router = APIRouter()

SETTLING_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


async def _handle_checkout_session(session, engine: SettlementEngine) -> dict:
    try:
        confirmation = PaymentConfirmation.from_checkout_session(session)
    except ValueError as e:
        logger.error(f"Checkout session {session.get('id')} has unusable metadata: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid checkout metadata: {e}"
        )

    if confirmation is None:
        return {"status": "ignored"}

    if session.get("payment_status") != "paid":
        # Delayed payment methods complete later via async_payment_succeeded
        logger.info(f"Checkout session {session.get('id')} completed unpaid; waiting for payment")
        return {"status": "pending"}

    result = await engine.settle(confirmation)
    return {"status": result.status}


async def _handle_payment_intent(intent, engine: SettlementEngine) -> dict:
    metadata = intent.get("metadata") or {}
    buyer_id = metadata.get("buyerId")
    video_id = metadata.get("videoId")
    if not buyer_id or not video_id:
        return {"status": "ignored"}

    outcome = await engine.record_video_sale(
        payment_ref=intent["id"],
        buyer_id=buyer_id,
        video_id=video_id,
        amount=intent.get("amount_received") or intent.get("amount") or 0,
        currency=intent.get("currency") or "eur",
    )
    return {"status": outcome}


@router.post("/api/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    ledger: LedgerStore = Depends(get_ledger),
    processor: StripeProcessor = Depends(get_processor)
):
    """
    Handle Stripe webhook events.

    - Verifies the webhook signature
    - Settles paid bundle checkouts (payment, access, scholar transfer)
    - Records legacy single-video payments
    - Acknowledges everything else as ignored
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    try:
        event = processor.construct_event(payload, sig_header)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload"
        )
    except stripe.SignatureVerificationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature"
        )

    event_type = event["type"]
    obj = event["data"]["object"]
    engine = SettlementEngine(ledger, processor)

    if event_type in SETTLING_EVENTS:
        return await _handle_checkout_session(obj, engine)

    if event_type == "payment_intent.succeeded":
        return await _handle_payment_intent(obj, engine)

    logger.debug(f"Ignoring Stripe event {event.get('id')} of type {event_type}")
    return {"status": "ignored"}
