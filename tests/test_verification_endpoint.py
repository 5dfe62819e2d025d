import datetime as dt
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from wooffy_api.db.session import get_session
from wooffy_api.models.redemption import VerificationAttempt


async def _seed(session_factory, seeder_for):
    async with session_factory() as session:
        seed = seeder_for(session)
        owner = await seed.user(full_name="Shop Owner")
        business = await seed.business(owner)
        member = await seed.user(full_name="Nikos Pappas")
        membership = await seed.membership(
            member,
            member_number="WF-777",
            expires_at=dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=60),
        )
        await seed.pet(membership, owner=member, name="Rex")
        offer = await seed.offer(business, title="Free Treat", discount_type="free_item", discount_value=None)
        await session.commit()
        return owner, business, offer, membership


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_verify_member_returns_valid_body(app_with_db, seeder_for, make_token) -> None:
    app, session_factory = app_with_db
    owner, business, offer, membership = await _seed(session_factory, seeder_for)

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/verify-member",
            json={"memberId": "WF-777", "offerId": str(offer.id), "businessId": str(business.id)},
            headers={"Authorization": f"Bearer {make_token(owner.id)}", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "valid"
    assert body["memberName"] == "Nikos Pappas"
    assert body["petName"] == "Rex"
    assert body["memberId"] == "WF-777"
    assert body["membershipId"] == str(membership.id)
    assert body["offerId"] == str(offer.id)
    assert body["offerTitle"] == "Free Treat"
    assert body["discount"] == "Free item - Free Treat"
    assert "attemptsRemaining" not in body
    assert "availablePets" not in body

    async with session_factory() as session:
        attempt = (await session.execute(select(VerificationAttempt))).scalar_one()
    assert attempt.ip_address == "203.0.113.9"


@pytest.mark.asyncio
async def test_verify_member_invalid_code(app_with_db, seeder_for, make_token) -> None:
    app, session_factory = app_with_db
    owner, business, offer, _ = await _seed(session_factory, seeder_for)

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/verify-member",
            json={"memberId": "WF-000", "offerId": str(offer.id), "businessId": str(business.id)},
            headers={"Authorization": f"Bearer {make_token(owner.id)}"},
        )

    assert response.status_code == 200
    assert response.json() == {"status": "invalid", "attemptsRemaining": 9}


@pytest.mark.asyncio
async def test_verify_member_requires_bearer_token(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        missing = await client.post("/api/v1/verify-member", json={})
        wrong_scheme = await client.post("/api/v1/verify-member", json={}, headers={"Authorization": "Basic abc"})

    assert missing.status_code == 401
    assert missing.json() == {"error": "Unauthorized", "code": "UNAUTHORIZED"}
    assert wrong_scheme.status_code == 401


@pytest.mark.asyncio
async def test_verify_member_rejects_bad_tokens(app_with_db, make_token) -> None:
    app, _ = app_with_db
    user_id = uuid4()

    async with _client(app) as client:
        expired = await client.post(
            "/api/v1/verify-member",
            json={},
            headers={"Authorization": f"Bearer {make_token(user_id, expires_in=-60)}"},
        )
        forged = await client.post(
            "/api/v1/verify-member",
            json={},
            headers={"Authorization": f"Bearer {make_token(user_id, secret='another-secret-entirely-000000000')}"},
        )

    assert expired.status_code == 401
    assert forged.status_code == 401
    assert forged.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ({"offerId": "x", "businessId": "y"}, "MISSING_FIELDS"),
        ({"memberId": "WF-1", "businessId": str(uuid4())}, "MISSING_FIELDS"),
        ({"memberId": "WF-1", "offerId": "not-a-uuid", "businessId": str(uuid4())}, "INVALID_FORMAT"),
        ({"memberId": "WF-1", "offerId": str(uuid4()), "businessId": "nope"}, "INVALID_FORMAT"),
        ({"memberId": "W" * 51, "offerId": str(uuid4()), "businessId": str(uuid4())}, "INVALID_FORMAT"),
        ({"memberId": 12345, "offerId": str(uuid4()), "businessId": str(uuid4())}, "INVALID_FORMAT"),
    ],
)
async def test_verify_member_validates_input(app_with_db, make_token, payload, code) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/verify-member",
            json=payload,
            headers={"Authorization": f"Bearer {make_token(uuid4())}"},
        )

    assert response.status_code == 400
    assert response.json()["code"] == code


@pytest.mark.asyncio
async def test_verify_member_rejects_non_json_body(app_with_db, make_token) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/verify-member",
            content=b"memberId=WF-1",
            headers={"Authorization": f"Bearer {make_token(uuid4())}", "Content-Type": "text/plain"},
        )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request format", "code": "INVALID_FORMAT"}


@pytest.mark.asyncio
async def test_verify_member_lockout_returns_429(app_with_db, seeder_for, make_token) -> None:
    app, session_factory = app_with_db
    owner, business, offer, _ = await _seed(session_factory, seeder_for)
    headers = {"Authorization": f"Bearer {make_token(owner.id)}"}
    payload = {"memberId": "WRONG", "offerId": str(offer.id), "businessId": str(business.id)}

    async with _client(app) as client:
        for _ in range(10):
            response = await client.post("/api/v1/verify-member", json=payload, headers=headers)
            assert response.status_code == 200
        locked = await client.post(
            "/api/v1/verify-member",
            json={**payload, "memberId": "WF-777"},
            headers=headers,
        )

    assert locked.status_code == 429
    body = locked.json()
    assert body["code"] == "RATE_LIMITED"
    assert body["error"] == "Too many failed attempts. Please try again later."
    assert body["remainingMinutes"] in (29, 30)
    assert dt.datetime.fromisoformat(body["lockoutExpiresAt"]) > dt.datetime.now(dt.timezone.utc)


class BrokenSession:
    """Session stand-in whose every query fails with ``error``."""

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.rolled_back = False

    async def execute(self, *args, **kwargs):
        raise self.error

    async def scalar(self, *args, **kwargs):
        raise self.error

    async def get(self, *args, **kwargs):
        raise self.error

    async def rollback(self) -> None:
        self.rolled_back = True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        OperationalError("SELECT 1", {}, Exception("server closed the connection: secret-host:5432")),
        ConnectionResetError("Connection reset by secret-host:5432"),
    ],
    ids=["database-error", "connection-reset"],
)
async def test_verify_member_hides_unexpected_failures(app_with_db, make_token, error) -> None:
    app, _ = app_with_db
    session = BrokenSession(error)

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test"
    ) as client:
        response = await client.post(
            "/api/v1/verify-member",
            json={"memberId": "WF-777", "offerId": str(uuid4()), "businessId": str(uuid4())},
            headers={"Authorization": f"Bearer {make_token(uuid4())}"},
        )

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}
    assert "secret-host" not in response.text
