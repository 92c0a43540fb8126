"""Bundle checkout: price, fee quote and hosted Stripe Checkout Session."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import uuid4

import stripe
from fastapi import HTTPException, status

from uniclips.config import settings
from uniclips.models.bundle_sale import BundleSale, SaleStatus
from uniclips.models.purchase import Purchase
from uniclips.models.subject import Subject
from uniclips.services.fees import FeeCalculator, FeeSplit
from uniclips.services.ledger import LedgerStore
from uniclips.services.stripe_processor import StripeProcessor, processor_error, processor_unavailable

logger = logging.getLogger(__name__)

BUNDLE_SALE_TYPE = "subject_bundle"


@dataclass(frozen=True)
class CheckoutResult:
    session_id: str
    checkout_url: str
    amount: int
    currency: str
    split: FeeSplit
    sale_id: str


def require_ids(**ids: Optional[str]) -> None:
    """Reject the request naming the first missing identifier."""
    for name, value in ids.items():
        if not value or not str(value).strip():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"{name} is required"
            )


def bundle_price(subject: Subject) -> int:
    """Scholar-set bundle price in cents, or the platform default when unset."""
    return subject.bundle_price if subject.bundle_price else settings.DEFAULT_BUNDLE_PRICE


def build_sale_metadata(
    *,
    sale_id: str,
    buyer_id: str,
    subject_id: str,
    scholar_id: str,
    amount: int,
    split: FeeSplit,
    transfer_group: str,
    connected_account: Optional[str],
) -> dict[str, str]:
    """Metadata carried on the checkout session so settlement never re-derives the split."""
    metadata = {
        "type": BUNDLE_SALE_TYPE,
        "sale_id": sale_id,
        "buyer_id": buyer_id,
        "subject_id": subject_id,
        "scholar_id": scholar_id,
        "amount": str(amount),
        "platform_fee_percent": str(split.platform_percent),
        "platform_share": str(split.platform_share),
        "creator_share": str(split.creator_share),
        "transfer_group": transfer_group,
    }
    if connected_account:
        metadata["connected_account"] = connected_account
    return metadata


class CheckoutOrchestrator:
    """Builds bundle purchases for buyers.

    Nothing is written to the ledger until every precondition has passed
    and Stripe has returned a session.
    """

    def __init__(self, ledger: LedgerStore, processor: StripeProcessor, fees: Optional[FeeCalculator] = None):
        self.ledger = ledger
        self.processor = processor
        self.fees = fees or FeeCalculator(ledger)

    async def create_checkout(
        self,
        buyer_id: str,
        subject_id: str,
        scholar_id: str,
        now: Optional[datetime] = None,
    ) -> CheckoutResult:
        """
        Create a hosted checkout session for a subject bundle.

        - Validates identifiers and that Stripe is configured
        - Rejects buyers who already hold current access
        - Resolves price (subject override or platform default)
        - Quotes the fee split from the live sales count
        - Records the sale as ``initiated``
        """
        require_ids(buyer_id=buyer_id, subject_id=subject_id, scholar_id=scholar_id)
        now = now or datetime.utcnow()

        if not self.processor.configured:
            raise processor_unavailable()

        if buyer_id == scholar_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You already own this course bundle as the scholar"
            )

        existing = await self.ledger.find_current_purchase(buyer_id, subject_id, scholar_id, now)
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You have already purchased this course bundle"
            )

        subject = await self.ledger.get_subject(subject_id)
        if not subject:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Subject not found"
            )
        amount = bundle_price(subject)

        profile = await self.ledger.get_scholar_profile(scholar_id)
        if not profile or not profile.approved:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Scholar not found"
            )

        split, prior_sales = await self.fees.quote(subject_id, scholar_id, amount)

        sale_id = str(uuid4())
        transfer_group = f"sale_{sale_id}"
        metadata = build_sale_metadata(
            sale_id=sale_id,
            buyer_id=buyer_id,
            subject_id=subject_id,
            scholar_id=scholar_id,
            amount=amount,
            split=split,
            transfer_group=transfer_group,
            connected_account=profile.stripe_account_id,
        )

        try:
            session = self.processor.create_checkout_session(
                amount=amount,
                currency=settings.CURRENCY,
                product_name=f"UniClips course bundle: {subject.name}",
                metadata=metadata,
                transfer_group=transfer_group,
                success_url=(
                    f"{settings.FRONTEND_URL}/purchase/success"
                    "?session_id={CHECKOUT_SESSION_ID}"
                ),
                cancel_url=f"{settings.FRONTEND_URL}/purchase/cancelled",
            )
        except stripe.StripeError as e:
            logger.warning(f"Checkout session creation failed for sale {sale_id}: {e}")
            raise processor_error(e, "create checkout session")

        self.ledger.add(BundleSale(
            uuid=sale_id,
            checkout_session_id=session.id,
            buyer_user_id=buyer_id,
            subject_id=subject_id,
            scholar_user_id=scholar_id,
            amount=amount,
            currency=settings.CURRENCY,
            platform_fee_percent=split.platform_percent,
            platform_share=split.platform_share,
            creator_share=split.creator_share,
            status=SaleStatus.INITIATED,
        ))
        await self.ledger.commit()

        logger.info(
            f"Checkout {session.id} created: subject={subject_id} scholar={scholar_id} "
            f"amount={amount} fee={split.platform_percent}% prior_sales={prior_sales}"
        )
        return CheckoutResult(
            session_id=session.id,
            checkout_url=session.url,
            amount=amount,
            currency=settings.CURRENCY,
            split=split,
            sale_id=sale_id,
        )

    async def check_purchase(self, buyer_id: str, subject_id: str, scholar_id: str) -> Optional[Purchase]:
        """Current purchase for the triple, if the buyer has access."""
        require_ids(subject_id=subject_id, scholar_id=scholar_id)
        return await self.ledger.find_current_purchase(buyer_id, subject_id, scholar_id, datetime.utcnow())

    async def create_video_payment_intent(self, buyer_id: str, video_id: str):
        """Legacy single-video purchase: returns a PaymentIntent for the video price."""
        require_ids(video_id=video_id)
        if not self.processor.configured:
            raise processor_unavailable()

        video = await self.ledger.get_video(video_id)
        if not video:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")

        if video.is_free or video.price == 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This video is free")

        if video.scholar_user_id == buyer_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You already own this video as the creator"
            )

        if await self.ledger.find_video_purchase(buyer_id, video_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You have already purchased this video"
            )

        try:
            intent = self.processor.create_payment_intent(
                amount=video.price,
                currency=settings.CURRENCY,
                metadata={"buyerId": buyer_id, "videoId": video_id},
            )
        except stripe.StripeError as e:
            raise processor_error(e, "create payment intent")

        return intent, video.price

    async def list_purchases(self, buyer_id: str):
        """Buyer's bundle purchases as (purchase, subject name, scholar) rows, newest first."""
        return await self.ledger.list_buyer_purchases(buyer_id)
