"""Tests for bundle checkout endpoints."""
import pytest
import stripe
from datetime import datetime, timedelta
from unittest.mock import patch, MagicMock
from sqlalchemy import select

from uniclips.models import Purchase, BundleSale, SaleStatus, ScholarProfile, Subject, VideoPurchase
from conftest import auth_headers


def mock_session():
    return MagicMock(id="cs_test_123", url="https://checkout.stripe.com/c/pay/cs_test_123")


@pytest.mark.asyncio
async def test_checkout_creates_session_and_initiated_sale(client, test_db, learner, scholar, subject):
    with patch("stripe.checkout.Session.create") as mock_create:
        mock_create.return_value = mock_session()
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == "cs_test_123"
    assert data["amount"] == 600
    assert data["platform_fee_percent"] == 30
    assert data["platform_share"] == 180
    assert data["creator_share"] == 420

    metadata = mock_create.call_args.kwargs["metadata"]
    assert metadata["type"] == "subject_bundle"
    assert metadata["creator_share"] == "420"
    assert metadata["connected_account"] == "acct_scholar123"
    assert mock_create.call_args.kwargs["api_key"] == "sk_test_123"

    sale = (await test_db.execute(select(BundleSale))).scalar_one()
    assert sale.status == SaleStatus.INITIATED
    assert sale.checkout_session_id == "cs_test_123"
    assert sale.creator_share == 420


@pytest.mark.asyncio
async def test_checkout_uses_default_price(client, test_db, learner, scholar):
    subj = Subject(name="Statistics")
    test_db.add(subj)
    await test_db.commit()

    with patch("stripe.checkout.Session.create") as mock_create:
        mock_create.return_value = mock_session()
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subj.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 200
    assert response.json()["amount"] == 600


@pytest.mark.asyncio
async def test_checkout_upper_tier_after_hundred_sales(client, test_db, learner, scholar, subject, add_sales):
    await add_sales(100, subject_id=subject.uuid, scholar_id=scholar.uuid, buyer_id=learner.uuid)

    with patch("stripe.checkout.Session.create") as mock_create:
        mock_create.return_value = mock_session()
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 200
    data = response.json()
    assert data["platform_fee_percent"] == 50
    assert data["platform_share"] == 300
    assert data["creator_share"] == 300


@pytest.mark.asyncio
async def test_checkout_blank_id_rejected(client, learner, scholar):
    response = await client.post(
        "/api/purchases/subject/checkout",
        json={"subject_id": "   ", "scholar_id": scholar.uuid},
        headers=auth_headers(learner),
    )
    assert response.status_code == 422
    assert "subject_id" in response.text


@pytest.mark.asyncio
async def test_checkout_requires_auth(client, subject, scholar):
    response = await client.post(
        "/api/purchases/subject/checkout",
        json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_rejects_current_purchase(client, test_db, learner, scholar, subject):
    test_db.add(Purchase(
        buyer_user_id=learner.uuid,
        subject_id=subject.uuid,
        scholar_user_id=scholar.uuid,
        amount=600,
        transaction_ref="pi_existing",
        expires_at=datetime.utcnow() + timedelta(days=30),
    ))
    await test_db.commit()

    with patch("stripe.checkout.Session.create") as mock_create:
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "You have already purchased this course bundle"
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_checkout_allowed_after_expiry(client, test_db, learner, scholar, subject):
    test_db.add(Purchase(
        buyer_user_id=learner.uuid,
        subject_id=subject.uuid,
        scholar_user_id=scholar.uuid,
        amount=600,
        transaction_ref="pi_expired",
        expires_at=datetime.utcnow() - timedelta(days=1),
    ))
    await test_db.commit()

    with patch("stripe.checkout.Session.create") as mock_create:
        mock_create.return_value = mock_session()
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_checkout_unknown_subject(client, learner, scholar):
    with patch("stripe.checkout.Session.create"):
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": "missing-subject", "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )
    assert response.status_code == 404
    assert response.json()["detail"] == "Subject not found"


@pytest.mark.asyncio
async def test_checkout_unapproved_scholar(client, test_db, learner, scholar, subject):
    profile = (await test_db.execute(
        select(ScholarProfile).where(ScholarProfile.user_id == scholar.uuid)
    )).scalar_one()
    profile.approved = False
    await test_db.commit()

    with patch("stripe.checkout.Session.create"):
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )
    assert response.status_code == 404
    assert response.json()["detail"] == "Scholar not found"


@pytest.mark.asyncio
async def test_checkout_processor_not_configured(client, processor, learner, scholar, subject):
    processor.api_key = ""
    response = await client.post(
        "/api/purchases/subject/checkout",
        json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
        headers=auth_headers(learner),
    )
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_checkout_processor_error_writes_nothing(client, test_db, learner, scholar, subject):
    with patch("stripe.checkout.Session.create") as mock_create:
        mock_create.side_effect = stripe.InvalidRequestError("Invalid currency", "currency")
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 502
    sales = (await test_db.execute(select(BundleSale))).scalars().all()
    assert sales == []


@pytest.mark.asyncio
async def test_checkout_processor_unreachable(client, learner, scholar, subject):
    with patch("stripe.checkout.Session.create") as mock_create:
        mock_create.side_effect = stripe.APIConnectionError("Network down")
        response = await client.post(
            "/api/purchases/subject/checkout",
            json={"subject_id": subject.uuid, "scholar_id": scholar.uuid},
            headers=auth_headers(learner),
        )
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_check_purchase(client, test_db, learner, scholar, subject):
    params = {"subject_id": subject.uuid, "scholar_id": scholar.uuid}
    response = await client.get("/api/purchases/subject/check", params=params, headers=auth_headers(learner))
    assert response.status_code == 200
    assert response.json()["has_purchased"] is False

    purchase = Purchase(
        buyer_user_id=learner.uuid,
        subject_id=subject.uuid,
        scholar_user_id=scholar.uuid,
        amount=600,
        transaction_ref="pi_check",
        expires_at=datetime.utcnow() + timedelta(days=300),
    )
    test_db.add(purchase)
    await test_db.commit()

    response = await client.get("/api/purchases/subject/check", params=params, headers=auth_headers(learner))
    data = response.json()
    assert data["has_purchased"] is True
    assert data["purchase_id"] == purchase.uuid


@pytest.mark.asyncio
async def test_list_subject_purchases(client, test_db, learner, scholar, subject):
    test_db.add(Purchase(
        buyer_user_id=learner.uuid,
        subject_id=subject.uuid,
        scholar_user_id=scholar.uuid,
        amount=600,
        transaction_ref="pi_list",
        expires_at=datetime.utcnow() + timedelta(days=300),
    ))
    await test_db.commit()

    response = await client.get("/api/purchases/subjects", headers=auth_headers(learner))
    assert response.status_code == 200
    purchases = response.json()["purchases"]
    assert len(purchases) == 1
    assert purchases[0]["subject_name"] == "Linear Algebra"
    assert purchases[0]["scholar_name"] == "Sami Scholar"


@pytest.mark.asyncio
async def test_video_payment_intent(client, learner, video):
    with patch("stripe.PaymentIntent.create") as mock_create:
        mock_create.return_value = MagicMock(client_secret="pi_video_secret_abc")
        response = await client.post(
            "/api/purchases/video/intent",
            json={"video_id": video.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 200
    data = response.json()
    assert data["client_secret"] == "pi_video_secret_abc"
    assert data["amount"] == 500
    assert mock_create.call_args.kwargs["metadata"] == {"buyerId": learner.uuid, "videoId": video.uuid}


@pytest.mark.asyncio
async def test_video_payment_intent_already_purchased(client, test_db, learner, video):
    test_db.add(VideoPurchase(buyer_user_id=learner.uuid, video_id=video.uuid, amount=500, transaction_ref="pi_v1"))
    await test_db.commit()

    with patch("stripe.PaymentIntent.create") as mock_create:
        response = await client.post(
            "/api/purchases/video/intent",
            json={"video_id": video.uuid},
            headers=auth_headers(learner),
        )

    assert response.status_code == 400
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_video_payment_intent_own_video(client, scholar, video):
    with patch("stripe.PaymentIntent.create"):
        response = await client.post(
            "/api/purchases/video/intent",
            json={"video_id": video.uuid},
            headers=auth_headers(scholar),
        )
    assert response.status_code == 400
