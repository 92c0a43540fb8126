"""Tests for settings normalization and processor configuration."""
import stripe

from uniclips.config import Settings
from uniclips.services.stripe_processor import is_live_key, is_missing_account, processor_error


def test_postgres_url_gets_async_driver():
    s = Settings(DATABASE_URL="postgresql://u:p@db:5432/uniclips?sslmode=require")
    assert s.DATABASE_URL == "postgresql+asyncpg://u:p@db:5432/uniclips?ssl=require"


def test_bundle_defaults():
    s = Settings()
    assert s.DEFAULT_BUNDLE_PRICE == 600
    assert s.ACCESS_DURATION_DAYS == 365
    assert s.CURRENCY == "eur"


def test_live_key_detection():
    assert is_live_key("sk_test_abc")
    assert is_live_key("sk_live_abc")
    assert not is_live_key("")
    assert not is_live_key("pk_test_abc")
    assert not is_live_key("sk_test_dummy")


def test_missing_account_detection():
    assert is_missing_account(stripe.InvalidRequestError("No such account: 'acct_x'", "account"))
    assert is_missing_account(stripe.PermissionError("No access"))
    assert not is_missing_account(stripe.InvalidRequestError("Invalid amount", "amount"))
    assert not is_missing_account(stripe.APIConnectionError("timeout"))


def test_processor_error_status_codes():
    assert processor_error(stripe.APIConnectionError("timeout"), "create transfer").status_code == 503
    assert processor_error(stripe.AuthenticationError("bad key"), "create transfer").status_code == 503
    assert processor_error(stripe.CardError("declined", "card", "card_declined"), "create transfer").status_code == 502
