"""Manual payouts to scholars, initiated by an admin."""
import logging
from typing import Optional

import stripe
from fastapi import HTTPException, status

from uniclips.models.payout import Payout, PayoutStatus
from uniclips.services.ledger import LedgerStore
from uniclips.services.stripe_processor import StripeProcessor, processor_error, processor_unavailable

logger = logging.getLogger(__name__)


class PayoutService:
    def __init__(self, ledger: LedgerStore, processor: StripeProcessor):
        self.ledger = ledger
        self.processor = processor

    async def create_manual_payout(
        self,
        scholar_user_id: str,
        amount: int,
        currency: str = "eur",
        description: Optional[str] = None,
    ) -> Payout:
        """
        Transfer ``amount`` cents to an onboarded scholar and record it as completed.

        Nothing is recorded when the transfer fails; the admin sees the error
        and may retry.
        """
        if amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="amount must be a positive number of cents"
            )

        profile = await self.ledger.get_scholar_profile(scholar_user_id)
        if not profile:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scholar not found")

        if not profile.stripe_account_id or not profile.stripe_onboarding_complete:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Scholar has not completed Stripe onboarding"
            )

        if not self.processor.configured:
            raise processor_unavailable()

        description = description or "Payout from UniClips"
        try:
            transfer = self.processor.create_transfer(
                amount=amount,
                currency=currency.lower(),
                destination=profile.stripe_account_id,
                description=description,
            )
        except stripe.StripeError as e:
            logger.error(f"Manual payout to scholar {scholar_user_id} failed: {e}")
            raise processor_error(e, "create payout")

        payout = Payout(
            scholar_user_id=scholar_user_id,
            transfer_ref=transfer.id,
            amount=amount,
            currency=currency.lower(),
            status=PayoutStatus.COMPLETED,
            description=description,
        )
        self.ledger.add(payout)
        await self.ledger.commit()

        logger.info(f"Manual payout {transfer.id} of {amount} {currency} to scholar {scholar_user_id}")
        return payout

    async def list_payouts(self, scholar_user_id: str) -> list[Payout]:
        return await self.ledger.list_payouts(scholar_user_id)
