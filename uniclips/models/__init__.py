"""Database models for the UniClips payments service."""
from uniclips.models.user import User
from uniclips.models.scholar_profile import ScholarProfile
from uniclips.models.subject import Subject
from uniclips.models.video import Video
from uniclips.models.purchase import Purchase
from uniclips.models.video_purchase import VideoPurchase
from uniclips.models.bundle_sale import BundleSale, SaleStatus
from uniclips.models.payout import Payout, PayoutStatus

__all__ = [
    "User",
    "ScholarProfile",
    "Subject",
    "Video",
    "Purchase",
    "VideoPurchase",
    "BundleSale",
    "SaleStatus",
    "Payout",
    "PayoutStatus",
]
