"""Ledger store: queries and writes over purchases, sales and payouts."""
from datetime import datetime
from typing import Optional
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import Depends

from uniclips.database import get_db

from uniclips.models.user import User
from uniclips.models.scholar_profile import ScholarProfile
from uniclips.models.subject import Subject
from uniclips.models.video import Video
from uniclips.models.purchase import Purchase
from uniclips.models.video_purchase import VideoPurchase
from uniclips.models.bundle_sale import BundleSale, SaleStatus
from uniclips.models.payout import Payout, PayoutStatus


class LedgerStore:
    """Thin query layer over an ``AsyncSession``.

    Every component receives its own ``LedgerStore`` at construction time;
    transactions are committed by the component that owns the unit of work.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Unit of work ──────────────────────────────────────────────────────────

    def add(self, obj) -> None:
        self.db.add(obj)

    async def flush(self) -> None:
        await self.db.flush()

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ── Catalog ───────────────────────────────────────────────────────────────

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.uuid == user_id))
        return result.scalar_one_or_none()

    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        result = await self.db.execute(select(Subject).where(Subject.uuid == subject_id))
        return result.scalar_one_or_none()

    async def get_video(self, video_id: str) -> Optional[Video]:
        result = await self.db.execute(select(Video).where(Video.uuid == video_id))
        return result.scalar_one_or_none()

    async def get_scholar_profile(self, user_id: str) -> Optional[ScholarProfile]:
        result = await self.db.execute(
            select(ScholarProfile).where(ScholarProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def approved_scholars(self) -> list[tuple[User, ScholarProfile]]:
        """All approved scholars with their profiles, ordered by name."""
        result = await self.db.execute(
            select(User, ScholarProfile)
            .join(ScholarProfile, ScholarProfile.user_id == User.uuid)
            .where(ScholarProfile.approved.is_(True))
            .order_by(User.fname, User.lname)
        )
        return [(row[0], row[1]) for row in result.all()]

    # ── Bundle purchases ──────────────────────────────────────────────────────

    async def find_purchase(self, buyer_id: str, subject_id: str, scholar_id: str) -> Optional[Purchase]:
        """The purchase row for a triple, whether or not it is still current."""
        result = await self.db.execute(
            select(Purchase).where(
                Purchase.buyer_user_id == buyer_id,
                Purchase.subject_id == subject_id,
                Purchase.scholar_user_id == scholar_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_current_purchase(
        self, buyer_id: str, subject_id: str, scholar_id: str, now: datetime
    ) -> Optional[Purchase]:
        """The purchase for a triple if it is active and not expired."""
        purchase = await self.find_purchase(buyer_id, subject_id, scholar_id)
        if purchase and purchase.is_current(now):
            return purchase
        return None

    async def find_purchase_by_ref(self, transaction_ref: str) -> Optional[Purchase]:
        result = await self.db.execute(
            select(Purchase).where(Purchase.transaction_ref == transaction_ref)
        )
        return result.scalar_one_or_none()

    async def list_buyer_purchases(self, buyer_id: str) -> list[tuple[Purchase, str, User]]:
        """Buyer's bundle purchases with subject name and scholar, newest first."""
        result = await self.db.execute(
            select(Purchase, Subject.name, User)
            .join(Subject, Purchase.subject_id == Subject.uuid)
            .join(User, Purchase.scholar_user_id == User.uuid)
            .where(Purchase.buyer_user_id == buyer_id)
            .order_by(Purchase.created_at.desc())
        )
        return [(row[0], row[1], row[2]) for row in result.all()]

    # ── Bundle sales ──────────────────────────────────────────────────────────

    async def count_completed_bundle_sales(self, subject_id: str, scholar_id: str) -> int:
        """Sales counter used for the fee tier. Always a fresh query."""
        result = await self.db.execute(
            select(func.count(BundleSale.uuid)).where(
                BundleSale.subject_id == subject_id,
                BundleSale.scholar_user_id == scholar_id,
                BundleSale.status.in_(SaleStatus.COMPLETED),
            )
        )
        return result.scalar_one()

    async def get_sale(self, sale_id: str) -> Optional[BundleSale]:
        result = await self.db.execute(select(BundleSale).where(BundleSale.uuid == sale_id))
        return result.scalar_one_or_none()

    async def find_sale_by_session(self, checkout_session_id: str) -> Optional[BundleSale]:
        result = await self.db.execute(
            select(BundleSale).where(BundleSale.checkout_session_id == checkout_session_id)
        )
        return result.scalar_one_or_none()

    async def find_sale_by_payment_ref(self, payment_ref: str) -> Optional[BundleSale]:
        result = await self.db.execute(
            select(BundleSale).where(BundleSale.payment_ref == payment_ref)
        )
        return result.scalar_one_or_none()

    async def bundle_sales_totals(self, scholar_id: str, since: Optional[datetime] = None) -> tuple[int, int, int]:
        """(count, gross revenue, recorded creator share) of completed bundle sales."""
        conditions = [
            BundleSale.scholar_user_id == scholar_id,
            BundleSale.status.in_(SaleStatus.COMPLETED),
        ]
        if since is not None:
            conditions.append(BundleSale.settled_at >= since)
        result = await self.db.execute(
            select(
                func.count(BundleSale.uuid),
                func.coalesce(func.sum(BundleSale.amount), 0),
                func.coalesce(func.sum(BundleSale.creator_share), 0),
            ).where(and_(*conditions))
        )
        count, revenue, creator = result.one()
        return int(count or 0), int(revenue or 0), int(creator or 0)

    async def count_sales_awaiting_transfer(self, scholar_id: str) -> int:
        result = await self.db.execute(
            select(func.count(BundleSale.uuid)).where(
                BundleSale.scholar_user_id == scholar_id,
                BundleSale.status == SaleStatus.TRANSFER_FAILED,
            )
        )
        return result.scalar_one()

    # ── Legacy video purchases ────────────────────────────────────────────────

    async def find_video_purchase(self, buyer_id: str, video_id: str) -> Optional[VideoPurchase]:
        result = await self.db.execute(
            select(VideoPurchase).where(
                VideoPurchase.buyer_user_id == buyer_id,
                VideoPurchase.video_id == video_id,
            )
        )
        return result.scalars().first()

    async def find_video_purchase_by_ref(self, transaction_ref: str) -> Optional[VideoPurchase]:
        result = await self.db.execute(
            select(VideoPurchase).where(VideoPurchase.transaction_ref == transaction_ref)
        )
        return result.scalar_one_or_none()

    async def video_sales_totals(self, scholar_id: str, since: Optional[datetime] = None) -> tuple[int, int]:
        """(count, revenue) of legacy video sales.

        Revenue is taken from the video's list price: early purchase rows
        were written with a zero amount.
        """
        conditions = [Video.scholar_user_id == scholar_id]
        if since is not None:
            conditions.append(VideoPurchase.created_at >= since)
        result = await self.db.execute(
            select(
                func.count(VideoPurchase.uuid),
                func.coalesce(func.sum(Video.price), 0),
            )
            .select_from(VideoPurchase)
            .join(Video, VideoPurchase.video_id == Video.uuid)
            .where(and_(*conditions))
        )
        count, revenue = result.one()
        return int(count or 0), int(revenue or 0)

    async def video_sales_breakdown(self, scholar_id: str) -> list:
        """Per-video sales for a scholar's approved videos, best sellers first."""
        sales_count = func.count(VideoPurchase.uuid).label("sales_count")
        result = await self.db.execute(
            select(
                Video.uuid,
                Video.title,
                Video.price,
                Subject.name.label("subject_name"),
                sales_count,
            )
            .select_from(Video)
            .join(VideoPurchase, VideoPurchase.video_id == Video.uuid, isouter=True)
            .join(Subject, Video.subject_id == Subject.uuid, isouter=True)
            .where(Video.scholar_user_id == scholar_id, Video.approved.is_(True))
            .group_by(Video.uuid, Video.title, Video.price, Subject.name)
            .order_by(sales_count.desc())
        )
        return result.all()

    # ── Payouts ───────────────────────────────────────────────────────────────

    async def payout_totals(self, scholar_id: str) -> tuple[int, int]:
        """(total paid, payout count) over completed payouts."""
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(Payout.amount), 0),
                func.count(Payout.uuid),
            ).where(
                Payout.scholar_user_id == scholar_id,
                Payout.status == PayoutStatus.COMPLETED,
            )
        )
        total, count = result.one()
        return int(total or 0), int(count or 0)

    async def list_payouts(self, scholar_id: str) -> list[Payout]:
        result = await self.db.execute(
            select(Payout)
            .where(Payout.scholar_user_id == scholar_id)
            .order_by(Payout.created_at.desc())
        )
        return list(result.scalars().all())


async def get_ledger(db: AsyncSession = Depends(get_db)) -> LedgerStore:
    """Dependency providing a ledger bound to the request's session."""
    return LedgerStore(db)
