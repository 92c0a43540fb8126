"""Tests for Stripe Connect endpoints."""
import pytest
import stripe
from unittest.mock import patch, MagicMock
from sqlalchemy import select

from uniclips.models import ScholarProfile, User
from conftest import auth_headers


async def scholar_profile(db, user) -> ScholarProfile:
    return (await db.execute(select(ScholarProfile).where(ScholarProfile.user_id == user.uuid))).scalar_one()


@pytest.fixture
async def new_scholar(test_db):
    """Approved scholar who has not started onboarding."""
    user = User(fname="Nora", lname="New", email="nora@example.com", status="active", user_role="scholar")
    test_db.add(user)
    await test_db.flush()
    test_db.add(ScholarProfile(user_id=user.uuid, approved=True))
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.mark.asyncio
async def test_connect_onboard_new_account(client, test_db, new_scholar):
    """Test creating new Stripe Connect account."""
    with patch("stripe.Account.create") as mock_create, \
         patch("stripe.AccountLink.create") as mock_link:

        mock_create.return_value = MagicMock(id="acct_new123")
        mock_link.return_value = MagicMock(url="https://connect.stripe.com/setup/e/acct_new123")

        response = await client.post("/api/stripe-connect/onboard", headers=auth_headers(new_scholar))

    assert response.status_code == 200
    data = response.json()
    assert data["account_id"] == "acct_new123"
    assert "stripe.com" in data["url"]
    assert mock_create.call_args.kwargs["type"] == "express"
    assert mock_create.call_args.kwargs["country"] == "FI"

    profile = await scholar_profile(test_db, new_scholar)
    assert profile.stripe_account_id == "acct_new123"


@pytest.mark.asyncio
async def test_connect_onboard_existing_account(client, scholar):
    """Test onboarding with existing Connect account."""
    with patch("stripe.Account.create") as mock_create, \
         patch("stripe.AccountLink.create") as mock_link:
        mock_link.return_value = MagicMock(url="https://connect.stripe.com/setup/e/acct_scholar123")
        response = await client.post("/api/stripe-connect/onboard", headers=auth_headers(scholar))

    assert response.status_code == 200
    assert response.json()["account_id"] == "acct_scholar123"
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_connect_onboard_unapproved(client, test_db, new_scholar):
    profile = await scholar_profile(test_db, new_scholar)
    profile.approved = False
    await test_db.commit()

    response = await client.post("/api/stripe-connect/onboard", headers=auth_headers(new_scholar))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_connect_requires_scholar_role(client, learner):
    response = await client.get("/api/stripe-connect/status", headers=auth_headers(learner))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_connect_status_not_connected(client, new_scholar):
    response = await client.get("/api/stripe-connect/status", headers=auth_headers(new_scholar))

    assert response.status_code == 200
    data = response.json()
    assert data["connected"] is False
    assert data["account_id"] is None


@pytest.mark.asyncio
async def test_connect_status_live_refreshes_cache(client, test_db, scholar):
    profile = await scholar_profile(test_db, scholar)
    profile.stripe_onboarding_complete = False
    profile.stripe_details_submitted = False
    await test_db.commit()

    with patch("stripe.Account.retrieve") as mock_retrieve:
        mock_retrieve.return_value = {
            "id": "acct_scholar123",
            "details_submitted": True,
            "charges_enabled": True,
            "payouts_enabled": True,
            "country": "FI",
            "default_currency": "eur",
        }
        response = await client.get("/api/stripe-connect/status", headers=auth_headers(scholar))

    assert response.status_code == 200
    data = response.json()
    assert data["connected"] is True
    assert data["onboarding_complete"] is True
    assert data["payouts_enabled"] is True
    assert data["stripe_not_configured"] is False

    await test_db.refresh(profile)
    assert profile.stripe_onboarding_complete is True


@pytest.mark.asyncio
async def test_connect_status_clears_missing_account(client, test_db, scholar):
    with patch("stripe.Account.retrieve") as mock_retrieve:
        mock_retrieve.side_effect = stripe.InvalidRequestError(
            "No such account: 'acct_scholar123'", "account", code="resource_missing"
        )
        response = await client.get("/api/stripe-connect/status", headers=auth_headers(scholar))

    assert response.status_code == 200
    assert response.json()["connected"] is False

    profile = await scholar_profile(test_db, scholar)
    await test_db.refresh(profile)
    assert profile.stripe_account_id is None
    assert profile.stripe_onboarding_complete is False


@pytest.mark.asyncio
async def test_connect_status_revoked_access_clears_account(client, test_db, scholar):
    with patch("stripe.Account.retrieve") as mock_retrieve:
        mock_retrieve.side_effect = stripe.PermissionError("The provided key does not have access to account")
        response = await client.get("/api/stripe-connect/status", headers=auth_headers(scholar))

    assert response.json()["connected"] is False


@pytest.mark.asyncio
async def test_connect_status_other_error_keeps_account(client, test_db, scholar):
    with patch("stripe.Account.retrieve") as mock_retrieve:
        mock_retrieve.side_effect = stripe.APIConnectionError("Network down")
        response = await client.get("/api/stripe-connect/status", headers=auth_headers(scholar))

    assert response.status_code == 503
    profile = await scholar_profile(test_db, scholar)
    await test_db.refresh(profile)
    assert profile.stripe_account_id == "acct_scholar123"


@pytest.mark.asyncio
async def test_connect_status_cached_without_stripe(client, processor, scholar):
    processor.api_key = ""
    with patch("stripe.Account.retrieve") as mock_retrieve:
        response = await client.get("/api/stripe-connect/status", headers=auth_headers(scholar))

    mock_retrieve.assert_not_called()
    data = response.json()
    assert data["connected"] is True
    assert data["stripe_not_configured"] is True
    assert data["onboarding_complete"] is True


@pytest.mark.asyncio
async def test_dashboard_link(client, scholar):
    with patch("stripe.Account.create_login_link") as mock_login:
        mock_login.return_value = MagicMock(url="https://connect.stripe.com/express/acct_scholar123/abc")
        response = await client.get("/api/stripe-connect/dashboard-link", headers=auth_headers(scholar))

    assert response.status_code == 200
    assert "stripe.com" in response.json()["url"]
    assert mock_login.call_args.args[0] == "acct_scholar123"


@pytest.mark.asyncio
async def test_dashboard_link_without_account(client, new_scholar):
    response = await client.get("/api/stripe-connect/dashboard-link", headers=auth_headers(new_scholar))
    assert response.status_code == 404
