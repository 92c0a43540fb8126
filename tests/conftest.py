"""Pytest configuration and fixtures."""
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from uniclips.database import Base, get_db
from uniclips.auth.security import create_access_token
from uniclips.models import User, ScholarProfile, Subject, Video, BundleSale, SaleStatus
from uniclips.services.stripe_processor import StripeProcessor, get_processor
from main import app

TEST_STRIPE_KEY = "sk_test_123"
TEST_WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
async def test_db():
    """Create test database."""
    TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    AsyncSessionLocal = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def processor():
    """Stripe client with a test key; every Stripe call is patched per test."""
    return StripeProcessor(TEST_STRIPE_KEY, TEST_WEBHOOK_SECRET)


@pytest.fixture
async def client(test_db, processor):
    """Create test client."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_processor] = lambda: processor
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.uuid, "email": user.email, "role": user.user_role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def learner(test_db):
    user = User(fname="Liisa", lname="Learner", email="learner@example.com", status="active", user_role="learner")
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
async def scholar(test_db):
    """Approved scholar with an onboarded connected account."""
    user = User(fname="Sami", lname="Scholar", email="scholar@example.com", status="active", user_role="scholar")
    test_db.add(user)
    await test_db.flush()
    test_db.add(ScholarProfile(
        user_id=user.uuid,
        university="University of Helsinki",
        approved=True,
        stripe_account_id="acct_scholar123",
        stripe_onboarding_complete=True,
        stripe_details_submitted=True,
    ))
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
async def admin(test_db):
    user = User(fname="Ada", lname="Admin", email="admin@example.com", status="active", user_role="admin")
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
async def subject(test_db):
    subj = Subject(name="Linear Algebra", bundle_price=600)
    test_db.add(subj)
    await test_db.commit()
    await test_db.refresh(subj)
    return subj


@pytest.fixture
async def video(test_db, scholar, subject):
    vid = Video(
        title="Eigenvalues explained",
        price=500,
        approved=True,
        scholar_user_id=scholar.uuid,
        subject_id=subject.uuid,
    )
    test_db.add(vid)
    await test_db.commit()
    await test_db.refresh(vid)
    return vid


@pytest.fixture
def add_sales(test_db):
    """Insert settled bundle sales directly into the ledger."""
    async def _add(count: int, *, subject_id: str, scholar_id: str, buyer_id: str,
                   amount: int = 600, settled_at: datetime = None, prefix: str = "pi_hist"):
        await _insert_sales(test_db, count, subject_id, scholar_id, buyer_id, amount, settled_at, prefix)
    return _add


async def _insert_sales(db, count, subject_id, scholar_id, buyer_id, amount, settled_at, prefix):
    settled_at = settled_at or datetime.utcnow() - timedelta(days=1)
    for i in range(count):
        db.add(BundleSale(
            buyer_user_id=buyer_id,
            subject_id=subject_id,
            scholar_user_id=scholar_id,
            payment_ref=f"{prefix}_{i}",
            amount=amount,
            currency="eur",
            platform_fee_percent=30,
            platform_share=amount * 30 // 100,
            creator_share=amount - amount * 30 // 100,
            status=SaleStatus.SETTLED,
            settled_at=settled_at,
        ))
    await db.commit()
