"""Stripe client used by checkout, settlement and Connect handlers.

The API key is passed on every call instead of being assigned to the global
``stripe.api_key``, so each request works with the processor it was given.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

import stripe
from fastapi import HTTPException, status

from uniclips.config import settings

logger = logging.getLogger(__name__)


def is_live_key(api_key: str) -> bool:
    """A usable secret key: present, ``sk_`` prefixed, not a placeholder."""
    return bool(api_key) and api_key.startswith("sk_") and "dummy" not in api_key


def is_missing_account(exc: stripe.StripeError) -> bool:
    """True when Stripe says the connected account no longer exists for this platform."""
    if isinstance(exc, stripe.PermissionError):
        return True
    if isinstance(exc, stripe.InvalidRequestError):
        if exc.code in ("resource_missing", "account_invalid"):
            return True
        return "no such account" in str(exc).lower()
    return False


def processor_error(exc: stripe.StripeError, action: str) -> HTTPException:
    """Map a Stripe error to the HTTP error returned to the caller."""
    if isinstance(exc, (stripe.APIConnectionError, stripe.AuthenticationError)):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Payment processor unavailable: failed to {action}"
        )
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Failed to {action}: {exc.user_message or str(exc)}"
    )


def processor_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Stripe is not configured. Please add a valid STRIPE_SECRET_KEY."
    )


@dataclass(frozen=True)
class CheckoutSessionRef:
    """Hosted checkout session created for a buyer."""

    id: str
    url: str


class StripeProcessor:
    """Stripe API calls, scoped to one secret key."""

    def __init__(self, api_key: str, webhook_secret: str = ""):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    @property
    def configured(self) -> bool:
        return is_live_key(self.api_key)

    # ── Payments ──────────────────────────────────────────────────────────────

    def create_checkout_session(
        self,
        *,
        amount: int,
        currency: str,
        product_name: str,
        metadata: dict[str, str],
        transfer_group: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionRef:
        session = stripe.checkout.Session.create(
            api_key=self.api_key,
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": product_name},
                    "unit_amount": amount,
                },
                "quantity": 1,
            }],
            metadata=metadata,
            payment_intent_data={
                "metadata": metadata,
                "transfer_group": transfer_group,
            },
            success_url=success_url,
            cancel_url=cancel_url,
        )
        return CheckoutSessionRef(id=session.id, url=session.url)

    def retrieve_checkout_session(self, session_id: str) -> Any:
        return stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)

    def create_payment_intent(self, *, amount: int, currency: str, metadata: dict[str, str]) -> Any:
        return stripe.PaymentIntent.create(
            api_key=self.api_key,
            amount=amount,
            currency=currency,
            metadata=metadata,
        )

    def get_charge_id(self, payment_intent_id: str) -> Optional[str]:
        """Charge behind a PaymentIntent, used as the transfer's source transaction."""
        intent = stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.api_key)
        return intent.get("latest_charge")

    def create_transfer(
        self,
        *,
        amount: int,
        currency: str,
        destination: str,
        description: str,
        transfer_group: Optional[str] = None,
        source_transaction: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "destination": destination,
            "description": description,
        }
        if transfer_group:
            params["transfer_group"] = transfer_group
        if source_transaction:
            params["source_transaction"] = source_transaction
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        return stripe.Transfer.create(api_key=self.api_key, **params)

    # ── Connect ───────────────────────────────────────────────────────────────

    def create_express_account(self, *, email: str, first_name: str, last_name: str) -> Any:
        return stripe.Account.create(
            api_key=self.api_key,
            type="express",
            country=settings.STRIPE_CONNECT_COUNTRY,
            email=email,
            capabilities={"transfers": {"requested": True}},
            business_type="individual",
            individual={
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
            },
        )

    def create_account_link(self, account_id: str) -> Any:
        return stripe.AccountLink.create(
            api_key=self.api_key,
            account=account_id,
            type="account_onboarding",
            refresh_url=f"{settings.FRONTEND_URL}/scholar-dashboard?stripe=refresh",
            return_url=f"{settings.FRONTEND_URL}/scholar-dashboard?stripe=success",
        )

    def retrieve_account(self, account_id: str) -> Any:
        return stripe.Account.retrieve(account_id, api_key=self.api_key)

    def create_login_link(self, account_id: str) -> Any:
        return stripe.Account.create_login_link(account_id, api_key=self.api_key)

    # ── Webhooks ──────────────────────────────────────────────────────────────

    def construct_event(self, payload: bytes, sig_header: str) -> Any:
        return stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)


def get_processor() -> StripeProcessor:
    """Dependency providing the Stripe client for a request."""
    return StripeProcessor(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)
