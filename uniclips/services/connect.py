"""Stripe Connect account link for scholars: onboarding, status and health."""
import logging

import stripe
from fastapi import HTTPException, status

from uniclips.config import settings
from uniclips.models.scholar_profile import ScholarProfile
from uniclips.models.user import User
from uniclips.schemas.connect import ConnectStatusResponse, ScholarAccountHealth
from uniclips.services.ledger import LedgerStore
from uniclips.services.stripe_processor import (
    StripeProcessor, is_missing_account, processor_error, processor_unavailable
)

logger = logging.getLogger(__name__)

LINKED = "Linked"
INCOMPLETE = "Incomplete"
ACTION_REQUIRED = "Action Required"
ERROR = "Error"


def _not_connected(stripe_not_configured: bool = False) -> ConnectStatusResponse:
    return ConnectStatusResponse(connected=False, stripe_not_configured=stripe_not_configured)


def _health_row(user: User, profile: ScholarProfile, **fields) -> ScholarAccountHealth:
    return ScholarAccountHealth(
        user_id=user.uuid,
        fname=user.fname,
        lname=user.lname,
        email=user.email,
        stripe_account_id=profile.stripe_account_id,
        **fields,
    )


class LiveAccountStrategy:
    """Reads account state from Stripe and refreshes the local cache."""

    source = "live"

    def __init__(self, ledger: LedgerStore, processor: StripeProcessor):
        self.ledger = ledger
        self.processor = processor

    async def status(self, profile: ScholarProfile) -> ConnectStatusResponse:
        if not profile.stripe_account_id:
            return _not_connected()

        try:
            account = self.processor.retrieve_account(profile.stripe_account_id)
        except stripe.StripeError as e:
            if is_missing_account(e):
                logger.warning(
                    f"Connected account {profile.stripe_account_id} for scholar {profile.user_id} "
                    f"no longer exists on Stripe; clearing local reference"
                )
                profile.clear_stripe_account()
                await self.ledger.commit()
                return _not_connected()
            raise processor_error(e, "retrieve account status")

        details_submitted = bool(account.get("details_submitted"))
        profile.stripe_onboarding_complete = details_submitted
        profile.stripe_details_submitted = details_submitted
        await self.ledger.commit()

        return ConnectStatusResponse(
            connected=True,
            account_id=account.get("id") or profile.stripe_account_id,
            onboarding_complete=details_submitted,
            details_submitted=details_submitted,
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
            country=account.get("country"),
            currency=account.get("default_currency"),
        )

    async def health(self, user: User, profile: ScholarProfile) -> ScholarAccountHealth:
        if not profile.stripe_account_id:
            return _health_row(user, profile, stripe_status=ACTION_REQUIRED, live=True)

        try:
            account = self.processor.retrieve_account(profile.stripe_account_id)
        except stripe.StripeError as e:
            logger.error(f"Error retrieving Stripe account for scholar {user.uuid}: {e}")
            return _health_row(user, profile, stripe_status=ERROR, live=True)

        return _health_row(
            user,
            profile,
            stripe_status=LINKED if account.get("details_submitted") else INCOMPLETE,
            payouts_enabled=bool(account.get("payouts_enabled")),
            country=account.get("country"),
            live=True,
        )


class CachedAccountStrategy:
    """Last known local state, used when Stripe is not configured."""

    source = "cached"

    def __init__(self, ledger: LedgerStore):
        self.ledger = ledger

    async def status(self, profile: ScholarProfile) -> ConnectStatusResponse:
        if not profile.stripe_account_id:
            return _not_connected(stripe_not_configured=True)
        return ConnectStatusResponse(
            connected=True,
            account_id=profile.stripe_account_id,
            onboarding_complete=profile.stripe_onboarding_complete,
            details_submitted=profile.stripe_details_submitted,
            country=settings.STRIPE_CONNECT_COUNTRY,
            currency=settings.CURRENCY,
            stripe_not_configured=True,
        )

    async def health(self, user: User, profile: ScholarProfile) -> ScholarAccountHealth:
        if not profile.stripe_account_id:
            return _health_row(user, profile, stripe_status=ACTION_REQUIRED, live=False)
        return _health_row(
            user,
            profile,
            stripe_status=LINKED if profile.stripe_onboarding_complete else INCOMPLETE,
            payouts_enabled=profile.stripe_onboarding_complete,
            country=settings.STRIPE_CONNECT_COUNTRY,
            live=False,
        )


def select_account_strategy(ledger: LedgerStore, processor: StripeProcessor):
    """Pick the live or cached path once, at the start of a handler."""
    if processor.configured:
        return LiveAccountStrategy(ledger, processor)
    return CachedAccountStrategy(ledger)


class ConnectService:
    """Scholar-facing Stripe Connect operations."""

    def __init__(self, ledger: LedgerStore, processor: StripeProcessor):
        self.ledger = ledger
        self.processor = processor

    async def _profile(self, user: User) -> ScholarProfile:
        profile = await self.ledger.get_scholar_profile(user.uuid)
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Scholar profile not found"
            )
        return profile

    async def create_onboarding_link(self, user: User) -> tuple[str, str]:
        """
        Create (or reuse) the scholar's Express account and an onboarding link.

        Returns ``(url, account_id)``.
        """
        if not self.processor.configured:
            raise processor_unavailable()

        profile = await self.ledger.get_scholar_profile(user.uuid)
        if not profile or not profile.approved:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Scholar profile not found or not approved"
            )

        try:
            if not profile.stripe_account_id:
                account = self.processor.create_express_account(
                    email=user.email,
                    first_name=user.fname,
                    last_name=user.lname,
                )
                profile.stripe_account_id = account.id
                await self.ledger.commit()
                logger.info(f"Created Stripe Connect account {account.id} for scholar {user.uuid}")

            account_link = self.processor.create_account_link(profile.stripe_account_id)
        except stripe.StripeError as e:
            raise processor_error(e, "create onboarding link")

        return account_link.url, profile.stripe_account_id

    async def account_status(self, user: User) -> ConnectStatusResponse:
        profile = await self._profile(user)
        strategy = select_account_strategy(self.ledger, self.processor)
        return await strategy.status(profile)

    async def dashboard_link(self, user: User) -> str:
        profile = await self._profile(user)
        if not profile.stripe_account_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Stripe account not found"
            )
        if not self.processor.configured:
            raise processor_unavailable()

        try:
            login_link = self.processor.create_login_link(profile.stripe_account_id)
        except stripe.StripeError as e:
            raise processor_error(e, "create dashboard link")
        return login_link.url
