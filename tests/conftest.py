import datetime as dt
import sys
from pathlib import Path
from uuid import UUID

import jwt
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

import wooffy_api.models  # noqa: E402,F401
from wooffy_api.app import create_app  # noqa: E402
from wooffy_api.core.settings import settings  # noqa: E402
from wooffy_api.db.base import Base  # noqa: E402
from wooffy_api.db.session import get_session  # noqa: E402
from wooffy_api.models.business import Business, BusinessBirthdaySettings  # noqa: E402
from wooffy_api.models.membership import Membership, Pet  # noqa: E402
from wooffy_api.models.offer import Offer  # noqa: E402
from wooffy_api.models.user import User  # noqa: E402
from wooffy_api.observability.scheduler import get_scheduler_store  # noqa: E402
from wooffy_api.observability.verification import get_verification_store  # noqa: E402
from wooffy_api.services.assistant import get_assistant_rate_limiter  # noqa: E402

TEST_JWT_SECRET = "test-secret-with-enough-entropy-for-hs256"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)

    # pysqlite's implicit transactions break SAVEPOINT; let SQLAlchemy emit BEGIN itself.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.setattr(settings, "auth_jwt_secret", TEST_JWT_SECRET)
    monkeypatch.setattr(settings, "smtp_host", None)
    monkeypatch.setattr(settings, "jobs_api_key", "")
    get_verification_store().reset()
    get_scheduler_store().reset()
    get_assistant_rate_limiter().reset()
    yield


@pytest.fixture
def make_token():
    def _make(user_id: UUID, *, email: str | None = None, expires_in: int = 3600, secret: str = TEST_JWT_SECRET) -> str:
        claims = {
            "sub": str(user_id),
            "aud": settings.auth_jwt_audience,
            "exp": dt.datetime.now(dt.timezone.utc) + dt.timedelta(seconds=expires_in),
        }
        if email:
            claims["email"] = email
        return jwt.encode(claims, secret, algorithm="HS256")

    return _make


class Seeder:
    """Small builders for the membership store."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def user(self, *, full_name: str | None = "Maria Georgiou", email: str | None = None) -> User:
        user = User(email=email or f"user{self._next()}@example.com", full_name=full_name)
        self.session.add(user)
        await self.session.flush()
        return user

    async def business(
        self,
        owner: User,
        *,
        name: str = "Paws Cafe",
        email: str | None = None,
        birthday_reminders: bool = False,
        custom_message: str | None = None,
    ) -> Business:
        business = Business(user_id=owner.id, business_name=name, email=email, owner=owner)
        self.session.add(business)
        await self.session.flush()
        if birthday_reminders:
            self.session.add(
                BusinessBirthdaySettings(business_id=business.id, enabled=True, custom_message=custom_message)
            )
            await self.session.flush()
        return business

    async def membership(
        self,
        user: User,
        *,
        member_number: str | None = None,
        expires_at: dt.datetime,
        is_active: bool = True,
        created_at: dt.datetime | None = None,
        pet_name: str | None = None,
    ) -> Membership:
        membership = Membership(
            user=user,
            user_id=user.id,
            member_number=member_number or f"WF-{self._next():06d}",
            expires_at=expires_at,
            is_active=is_active,
            pet_name=pet_name,
        )
        if created_at is not None:
            membership.created_at = created_at
        self.session.add(membership)
        await self.session.flush()
        return membership

    async def pet(
        self,
        membership: Membership | None,
        *,
        owner: User,
        name: str = "Rex",
        breed: str | None = "Labrador",
        pet_type: str = "dog",
        birthday: dt.date | None = None,
    ) -> Pet:
        pet = Pet(
            membership_id=membership.id if membership is not None else None,
            owner=owner,
            owner_user_id=owner.id,
            pet_name=name,
            pet_breed=breed,
            pet_type=pet_type,
            birthday=birthday,
        )
        self.session.add(pet)
        await self.session.flush()
        return pet

    async def offer(self, business: Business, **overrides) -> Offer:
        values = {
            "title": "Grooming Day",
            "discount_type": "percentage",
            "discount_value": 15,
            "redemption_scope": "per_member",
            "redemption_frequency": "one_time",
        }
        values.update(overrides)
        offer = Offer(business_id=business.id, **values)
        self.session.add(offer)
        await self.session.flush()
        return offer


@pytest.fixture
def seeder_for():
    return Seeder
