"""Settlement of paid bundle checkouts and transfers to scholars."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

import stripe
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

from uniclips.config import settings
from uniclips.models.bundle_sale import BundleSale, SaleStatus
from uniclips.models.payout import Payout, PayoutStatus
from uniclips.models.purchase import Purchase
from uniclips.models.video_purchase import VideoPurchase
from uniclips.services.checkout import BUNDLE_SALE_TYPE
from uniclips.services.ledger import LedgerStore
from uniclips.services.stripe_processor import StripeProcessor, processor_error

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "already_processed"
NO_CONNECTED_ACCOUNT = "no_connected_account"
DUPLICATE_PURCHASE = "duplicate_purchase"


def _int_field(metadata: Mapping[str, Any], key: str) -> int:
    value = metadata.get(key)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"metadata field '{key}' must be an integer, got {value!r}")


@dataclass(frozen=True)
class PaymentConfirmation:
    """A confirmed payment with the metadata recorded at checkout."""

    payment_ref: str
    buyer_id: str
    subject_id: str
    scholar_id: str
    amount: int
    currency: str
    creator_share: int
    platform_share: int
    platform_fee_percent: int
    checkout_session_id: Optional[str] = None
    sale_id: Optional[str] = None
    transfer_group: Optional[str] = None

    @classmethod
    def from_metadata(
        cls,
        metadata: Mapping[str, Any],
        *,
        payment_ref: str,
        amount: Optional[int] = None,
        currency: Optional[str] = None,
        checkout_session_id: Optional[str] = None,
    ) -> "PaymentConfirmation":
        """Build from checkout metadata. Raises ``ValueError`` when fields are missing or not numeric."""
        if not payment_ref:
            raise ValueError("payment reference is missing")
        for key in ("buyer_id", "subject_id", "scholar_id"):
            if not metadata.get(key):
                raise ValueError(f"metadata field '{key}' is missing")
        declared_amount = _int_field(metadata, "amount")
        return cls(
            payment_ref=payment_ref,
            buyer_id=metadata["buyer_id"],
            subject_id=metadata["subject_id"],
            scholar_id=metadata["scholar_id"],
            amount=amount if amount is not None else declared_amount,
            currency=(currency or settings.CURRENCY).lower(),
            creator_share=_int_field(metadata, "creator_share"),
            platform_share=_int_field(metadata, "platform_share"),
            platform_fee_percent=_int_field(metadata, "platform_fee_percent"),
            checkout_session_id=checkout_session_id,
            sale_id=metadata.get("sale_id"),
            transfer_group=metadata.get("transfer_group"),
        )

    @classmethod
    def from_checkout_session(cls, session: Mapping[str, Any]) -> Optional["PaymentConfirmation"]:
        """Confirmation for a completed bundle Checkout Session, or None for other sessions."""
        metadata = session.get("metadata") or {}
        if metadata.get("type") != BUNDLE_SALE_TYPE:
            return None
        return cls.from_metadata(
            metadata,
            payment_ref=session.get("payment_intent"),
            amount=session.get("amount_total"),
            currency=session.get("currency"),
            checkout_session_id=session.get("id"),
        )


@dataclass
class SettlementResult:
    status: str
    purchase_id: Optional[str] = None
    sale_id: Optional[str] = None
    transfer_ref: Optional[str] = None
    notes: list[str] = field(default_factory=list)

    @property
    def duplicate(self) -> bool:
        return self.status == ALREADY_PROCESSED


class SettlementEngine:
    """Turns a confirmed payment into buyer access and a scholar transfer.

    States per sale: initiated -> payment_confirmed -> transfer_attempted ->
    settled, or transfer_failed. A failed transfer never rolls back the
    purchase; the sale stays ``transfer_failed`` with a failed payout row
    for an operator to resolve.
    """

    def __init__(self, ledger: LedgerStore, processor: StripeProcessor):
        self.ledger = ledger
        self.processor = processor

    async def _already_settled(self, confirmation: PaymentConfirmation) -> bool:
        sale = await self.ledger.find_sale_by_payment_ref(confirmation.payment_ref)
        if sale and sale.status != SaleStatus.INITIATED:
            return True
        return await self.ledger.find_purchase_by_ref(confirmation.payment_ref) is not None

    async def _load_sale(self, confirmation: PaymentConfirmation) -> BundleSale:
        sale = None
        if confirmation.checkout_session_id:
            sale = await self.ledger.find_sale_by_session(confirmation.checkout_session_id)
        if sale is None and confirmation.sale_id:
            sale = await self.ledger.get_sale(confirmation.sale_id)
        if sale is None:
            # Payment arrived without a recorded checkout (e.g. session row lost); rebuild from metadata
            sale = BundleSale(
                checkout_session_id=confirmation.checkout_session_id,
                buyer_user_id=confirmation.buyer_id,
                subject_id=confirmation.subject_id,
                scholar_user_id=confirmation.scholar_id,
                amount=confirmation.amount,
                currency=confirmation.currency,
                platform_fee_percent=confirmation.platform_fee_percent,
                platform_share=confirmation.platform_share,
                creator_share=confirmation.creator_share,
            )
            if confirmation.sale_id:
                sale.uuid = confirmation.sale_id
            self.ledger.add(sale)
        return sale

    async def _flag_duplicate(self, confirmation: PaymentConfirmation) -> None:
        """Leave a paid sale for a bundle the buyer already holds where operators can refund it.

        The sale stays out of the sales counter and earnings.
        """
        sale = await self.ledger.find_sale_by_payment_ref(confirmation.payment_ref)
        if sale is None:
            sale = await self._load_sale(confirmation)
            sale.payment_ref = confirmation.payment_ref
        sale.failure_reason = DUPLICATE_PURCHASE
        try:
            await self.ledger.commit()
        except IntegrityError:
            await self.ledger.rollback()
            logger.info(f"Duplicate payment {confirmation.payment_ref} flagged concurrently")

    async def _grant_access(self, confirmation: PaymentConfirmation, existing: Optional[Purchase], now: datetime) -> Purchase:
        expires_at = now + timedelta(days=settings.ACCESS_DURATION_DAYS)
        if existing:
            # Renewal of an expired bundle: same row, new payment
            existing.amount = confirmation.amount
            existing.currency = confirmation.currency
            existing.transaction_ref = confirmation.payment_ref
            existing.expires_at = expires_at
            existing.active = True
            existing.renewed_at = now
            return existing

        purchase = Purchase(
            buyer_user_id=confirmation.buyer_id,
            subject_id=confirmation.subject_id,
            scholar_user_id=confirmation.scholar_id,
            amount=confirmation.amount,
            currency=confirmation.currency,
            transaction_ref=confirmation.payment_ref,
            expires_at=expires_at,
            active=True,
            created_at=now,
        )
        self.ledger.add(purchase)
        return purchase

    def _transfer(self, sale: BundleSale, confirmation: PaymentConfirmation, destination: str) -> Any:
        source_transaction = None
        try:
            source_transaction = self.processor.get_charge_id(confirmation.payment_ref)
        except stripe.StripeError as e:
            logger.warning(f"Could not resolve charge for {confirmation.payment_ref}, transferring without source: {e}")

        return self.processor.create_transfer(
            amount=confirmation.creator_share,
            currency=confirmation.currency,
            destination=destination,
            description=f"UniClips bundle sale {sale.uuid}",
            transfer_group=confirmation.transfer_group or confirmation.payment_ref,
            source_transaction=source_transaction,
            idempotency_key=f"transfer_{confirmation.payment_ref}",
        )

    async def settle(self, confirmation: PaymentConfirmation, now: Optional[datetime] = None) -> SettlementResult:
        """
        Settle one confirmed payment.

        Safe to call repeatedly for the same payment: later calls return
        ``already_processed`` without transferring anything. A payment for a
        bundle the buyer already holds only flags its sale ``duplicate_purchase``.
        """
        now = now or datetime.utcnow()

        if await self._already_settled(confirmation):
            logger.info(f"Payment {confirmation.payment_ref} already settled")
            return SettlementResult(status=ALREADY_PROCESSED)

        existing = await self.ledger.find_purchase(
            confirmation.buyer_id, confirmation.subject_id, confirmation.scholar_id
        )
        if existing and existing.is_current(now):
            purchase_id = existing.uuid
            logger.warning(
                f"Payment {confirmation.payment_ref} received for bundle the buyer already holds "
                f"(purchase {purchase_id}); no access change, sale flagged for refund"
            )
            await self._flag_duplicate(confirmation)
            return SettlementResult(status=ALREADY_PROCESSED, purchase_id=purchase_id)

        sale = await self._load_sale(confirmation)
        sale.payment_ref = confirmation.payment_ref
        sale.status = SaleStatus.PAYMENT_CONFIRMED
        purchase = await self._grant_access(confirmation, existing, now)

        try:
            await self.ledger.flush()
        except IntegrityError:
            # Concurrent delivery of the same payment won the race
            await self.ledger.rollback()
            logger.info(f"Payment {confirmation.payment_ref} settled concurrently")
            return SettlementResult(status=ALREADY_PROCESSED)

        result = SettlementResult(status=SaleStatus.SETTLED, purchase_id=purchase.uuid, sale_id=sale.uuid)
        profile = await self.ledger.get_scholar_profile(confirmation.scholar_id)
        destination = profile.stripe_account_id if profile else None

        if confirmation.creator_share <= 0:
            sale.status = SaleStatus.SETTLED
        elif not destination:
            sale.status = SaleStatus.TRANSFER_FAILED
            sale.failure_reason = NO_CONNECTED_ACCOUNT
            self.ledger.add(Payout(
                scholar_user_id=confirmation.scholar_id,
                source_payment_ref=confirmation.payment_ref,
                amount=confirmation.creator_share,
                currency=confirmation.currency,
                status=PayoutStatus.PENDING,
                description=f"Awaiting connected account for bundle sale {sale.uuid}",
            ))
            result.status = SaleStatus.TRANSFER_FAILED
            result.notes.append(NO_CONNECTED_ACCOUNT)
            logger.warning(
                f"Scholar {confirmation.scholar_id} has no connected account; "
                f"{confirmation.creator_share} {confirmation.currency} queued for payment {confirmation.payment_ref}"
            )
        else:
            sale.status = SaleStatus.TRANSFER_ATTEMPTED
            await self.ledger.flush()
            try:
                transfer = self._transfer(sale, confirmation, destination)
            except stripe.StripeError as e:
                sale.status = SaleStatus.TRANSFER_FAILED
                sale.failure_reason = str(e)
                self.ledger.add(Payout(
                    scholar_user_id=confirmation.scholar_id,
                    source_payment_ref=confirmation.payment_ref,
                    amount=confirmation.creator_share,
                    currency=confirmation.currency,
                    status=PayoutStatus.FAILED,
                    description=f"Transfer failed for bundle sale {sale.uuid}: {e}",
                ))
                result.status = SaleStatus.TRANSFER_FAILED
                result.notes.append(str(e))
                logger.error(
                    f"Transfer to scholar {confirmation.scholar_id} ({destination}) failed for payment "
                    f"{confirmation.payment_ref}, amount {confirmation.creator_share}: {e}"
                )
            else:
                sale.status = SaleStatus.SETTLED
                sale.transfer_ref = transfer.id
                self.ledger.add(Payout(
                    scholar_user_id=confirmation.scholar_id,
                    transfer_ref=transfer.id,
                    source_payment_ref=confirmation.payment_ref,
                    amount=confirmation.creator_share,
                    currency=confirmation.currency,
                    status=PayoutStatus.COMPLETED,
                    description=f"Bundle sale {sale.uuid}",
                ))
                result.transfer_ref = transfer.id

        sale.settled_at = now
        try:
            await self.ledger.commit()
        except IntegrityError:
            await self.ledger.rollback()
            logger.info(f"Payment {confirmation.payment_ref} settled concurrently")
            return SettlementResult(status=ALREADY_PROCESSED)

        logger.info(
            f"Settled payment {confirmation.payment_ref}: purchase={purchase.uuid} "
            f"sale={sale.uuid} status={sale.status}"
        )
        return result

    async def confirm_checkout_session(self, session_id: str, buyer_id: str) -> SettlementResult:
        """Settle a checkout the buyer returned from, after checking it with Stripe."""
        try:
            session = self.processor.retrieve_checkout_session(session_id)
        except stripe.StripeError as e:
            raise processor_error(e, "retrieve checkout session")

        try:
            confirmation = PaymentConfirmation.from_checkout_session(session)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        if confirmation is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Checkout session is not a course bundle purchase"
            )
        if confirmation.buyer_id != buyer_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Checkout session belongs to another user"
            )
        if session.get("payment_status") != "paid":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Payment not completed. Status: {session.get('payment_status')}"
            )
        return await self.settle(confirmation)

    async def record_video_sale(
        self,
        *,
        payment_ref: str,
        buyer_id: str,
        video_id: str,
        amount: int,
        currency: str,
    ) -> str:
        """Record a legacy single-video payment once per PaymentIntent."""
        if await self.ledger.find_video_purchase_by_ref(payment_ref):
            return ALREADY_PROCESSED

        video = await self.ledger.get_video(video_id)
        if not video:
            logger.warning(f"Video payment {payment_ref} references unknown video {video_id}")
            return "ignored"

        self.ledger.add(VideoPurchase(
            buyer_user_id=buyer_id,
            video_id=video_id,
            amount=amount,
            currency=currency,
            transaction_ref=payment_ref,
        ))
        try:
            await self.ledger.commit()
        except IntegrityError:
            await self.ledger.rollback()
            return ALREADY_PROCESSED
        return "processed"
