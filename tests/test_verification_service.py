import datetime as dt

import pytest

from wooffy_api.models.membership import Membership
from wooffy_api.models.redemption import OfferRedemption, VerificationAttempt
from wooffy_api.observability.verification import get_verification_store
from wooffy_api.services.offers import redemption_key
from wooffy_api.services.rate_limit import LockoutState
from wooffy_api.services.verification import (
    VerificationLockedError,
    VerificationRequest,
    VerificationService,
    VerificationStatus,
)
from sqlalchemy import func, select

# Thursday; 12:00 in Nicosia
NOW = dt.datetime(2024, 6, 13, 9, 0, tzinfo=dt.timezone.utc)


async def _setup(session, seeder_for, **offer_overrides):
    seed = seeder_for(session)
    owner = await seed.user(full_name="Shop Owner")
    business = await seed.business(owner)
    member = await seed.user(full_name="Maria Georgiou")
    membership = await seed.membership(
        member,
        member_number="WF-100200",
        expires_at=dt.datetime(2024, 12, 31, 22, 30, tzinfo=dt.timezone.utc),
    )
    offer = await seed.offer(business, **offer_overrides)
    return seed, business, member, membership, offer


def _request(business, offer, code="WF-100200"):
    return VerificationRequest(member_code=code, offer_id=offer.id, business_id=business.id, ip_address="10.0.0.1")


@pytest.mark.asyncio
async def test_valid_member_gets_discount_and_local_expiry(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed, business, member, membership, offer = await _setup(session, seeder_for)
        await seed.pet(membership, owner=member, name="Rex")
        await seed.pet(membership, owner=member, name="Luna", pet_type="cat")

        outcome = await VerificationService(session).verify(_request(business, offer, code="  WF-100200 "), now=NOW)

        assert outcome.status is VerificationStatus.VALID
        assert outcome.member_name == "Maria Georgiou"
        assert set(outcome.pet_name.split(", ")) == {"Rex", "Luna"}
        assert outcome.member_id == "WF-100200"
        assert outcome.membership_id == membership.id
        assert outcome.offer_id == offer.id
        assert outcome.offer_title == "Grooming Day"
        assert outcome.discount == "15% - Grooming Day"
        assert outcome.expiry_date == "01/01/2025"
        assert outcome.offer_type == "per_member"

        attempts = (await session.execute(select(VerificationAttempt))).scalars().all()
        assert [attempt.success for attempt in attempts] == [True]
        assert attempts[0].attempted_member_id == "WF-100200"
        assert attempts[0].ip_address == "10.0.0.1"

    assert get_verification_store().snapshot().statuses == {"valid": 1}


@pytest.mark.asyncio
async def test_unknown_code_counts_down_attempts(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        _, business, _, _, offer = await _setup(session, seeder_for)
        service = VerificationService(session)

        first = await service.verify(_request(business, offer, code="NOPE"), now=NOW)
        second = await service.verify(_request(business, offer, code="NOPE"), now=NOW + dt.timedelta(seconds=5))

    assert first.status is VerificationStatus.INVALID
    assert first.attempts_remaining == 9
    assert second.attempts_remaining == 8
    assert first.member_name is None


@pytest.mark.asyncio
async def test_tenth_failure_locks_out_the_business(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed, business, _, _, offer = await _setup(session, seeder_for)
        other_owner = await seed.user(full_name="Other Owner")
        other_business = await seed.business(other_owner, name="Bark Bistro")
        service = VerificationService(session)

        for index in range(9):
            await service.verify(_request(business, offer, code=f"BAD-{index}"), now=NOW)

        tenth = await service.verify(_request(business, offer, code="BAD-9"), now=NOW)
        assert tenth.status is VerificationStatus.INVALID
        assert tenth.attempts_remaining == 0

        with pytest.raises(VerificationLockedError) as excinfo:
            await service.verify(_request(business, offer), now=NOW + dt.timedelta(minutes=1))
        assert excinfo.value.remaining_minutes == 29
        assert excinfo.value.lockout_expires_at == NOW + dt.timedelta(minutes=30)

        # Even a valid code is refused while locked, and nothing is recorded.
        failures = await session.scalar(select(func.count()).select_from(VerificationAttempt))
        assert failures == 10

        unaffected = await service.verify(_request(other_business, offer, code="BAD"), now=NOW)
        assert unaffected.attempts_remaining == 9

        released = await service.verify(_request(business, offer), now=NOW + dt.timedelta(minutes=31))
        assert released.status is VerificationStatus.VALID

    assert get_verification_store().snapshot().errors == {"RATE_LIMITED": 1}


@pytest.mark.asyncio
async def test_expired_membership_reports_member_details(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed = seeder_for(session)
        owner = await seed.user()
        business = await seed.business(owner)
        member = await seed.user(full_name=None)
        await seed.membership(
            member,
            member_number="WF-OLD",
            expires_at=NOW - dt.timedelta(days=1),
            pet_name="Buddy",
        )
        offer = await seed.offer(business)

        outcome = await VerificationService(session).verify(_request(business, offer, code="WF-OLD"), now=NOW)
        attempt = (await session.execute(select(VerificationAttempt))).scalar_one()

    assert outcome.status is VerificationStatus.EXPIRED
    assert outcome.member_name == "Member"
    assert outcome.pet_name == "Buddy"
    assert outcome.member_id == "WF-OLD"
    assert outcome.expiry_date == "12/06/2024"
    assert outcome.discount is None
    assert attempt.success is False


@pytest.mark.asyncio
async def test_inactive_membership_is_expired(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed = seeder_for(session)
        owner = await seed.user()
        business = await seed.business(owner)
        member = await seed.user()
        await seed.membership(member, member_number="WF-OFF", expires_at=NOW + dt.timedelta(days=90), is_active=False)
        offer = await seed.offer(business)

        outcome = await VerificationService(session).verify(_request(business, offer, code="WF-OFF"), now=NOW)

    assert outcome.status is VerificationStatus.EXPIRED
    assert outcome.pet_name == "Not specified"


@pytest.mark.asyncio
async def test_one_time_offer_already_redeemed(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        _, business, _, membership, offer = await _setup(session, seeder_for)
        session.add(
            OfferRedemption(
                membership_id=membership.id,
                offer_id=offer.id,
                business_id=business.id,
                redemption_key=redemption_key(membership.id, offer.id, "member", "once"),
            )
        )
        await session.flush()

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.ALREADY_REDEEMED
    assert outcome.offer_title == "Grooming Day"
    assert outcome.membership_id is None
    assert outcome.discount is None


@pytest.mark.asyncio
async def test_daily_offer_is_valid_again_the_next_day(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        _, business, _, membership, offer = await _setup(session, seeder_for, redemption_frequency="daily")
        session.add(
            OfferRedemption(
                membership_id=membership.id,
                offer_id=offer.id,
                business_id=business.id,
                redemption_key=redemption_key(membership.id, offer.id, "member", "2024-06-12"),
            )
        )
        await session.flush()

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.VALID


@pytest.mark.asyncio
async def test_per_pet_offer_lists_pets_still_eligible(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed, business, member, membership, offer = await _setup(
            session, seeder_for, redemption_scope="per_pet", discount_type="fixed", discount_value=5
        )
        rex = await seed.pet(membership, owner=member, name="Rex")
        luna = await seed.pet(membership, owner=member, name="Luna")
        session.add(
            OfferRedemption(
                membership_id=membership.id,
                offer_id=offer.id,
                business_id=business.id,
                pet_id=rex.id,
                redemption_key=redemption_key(membership.id, offer.id, str(rex.id), "once"),
            )
        )
        await session.flush()

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.VALID
    assert outcome.offer_type == "per_pet"
    assert [(pet.id, pet.name) for pet in outcome.available_pets] == [(luna.id, "Luna")]
    assert outcome.total_pets == 2
    assert outcome.redeemed_pets_count == 1
    assert outcome.discount == "€5 - Grooming Day"


@pytest.mark.asyncio
async def test_per_pet_offer_with_every_pet_redeemed(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed, business, member, membership, offer = await _setup(session, seeder_for, redemption_scope="per_pet")
        rex = await seed.pet(membership, owner=member, name="Rex")
        session.add(
            OfferRedemption(
                membership_id=membership.id,
                offer_id=offer.id,
                business_id=business.id,
                pet_id=rex.id,
                redemption_key=redemption_key(membership.id, offer.id, str(rex.id), "once"),
            )
        )
        await session.flush()

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.ALREADY_REDEEMED
    assert outcome.message == "All pets have already used this offer."


@pytest.mark.asyncio
async def test_dog_only_offer_for_cat_household(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed, business, member, membership, offer = await _setup(
            session, seeder_for, redemption_scope="per_pet", pet_type="dog"
        )
        await seed.pet(membership, owner=member, name="Luna", pet_type="cat")

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.OFFER_UNAVAILABLE
    assert outcome.message == "This offer is only valid for dogs"


@pytest.mark.asyncio
async def test_unlimited_offer_is_never_already_redeemed(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        _, business, _, membership, offer = await _setup(session, seeder_for, redemption_frequency="unlimited")
        for token in ("a1", "b2"):
            session.add(
                OfferRedemption(
                    membership_id=membership.id,
                    offer_id=offer.id,
                    business_id=business.id,
                    redemption_key=redemption_key(membership.id, offer.id, "member", token),
                )
            )
        await session.flush()

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.VALID


@pytest.mark.asyncio
async def test_offer_from_another_business_is_unavailable(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed, _, _, _, offer = await _setup(session, seeder_for)
        other_owner = await seed.user()
        other_business = await seed.business(other_owner, name="Elsewhere")

        outcome = await VerificationService(session).verify(_request(other_business, offer), now=NOW)
        attempt = (await session.execute(select(VerificationAttempt))).scalar_one()

    assert outcome.status is VerificationStatus.OFFER_UNAVAILABLE
    assert outcome.message == "Offer not found"
    assert attempt.success is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"is_active": False}, "Offer is no longer active"),
        ({"valid_until": NOW - dt.timedelta(hours=1)}, "Offer has ended"),
        ({"available_days": [1, 2]}, "Offer is not available today"),
        ({"available_from_hour": 14}, "Offer is not available at this hour"),
        ({"available_until_hour": 12}, "Offer is not available at this hour"),
    ],
)
async def test_offer_restrictions(session_factory, seeder_for, overrides, message) -> None:
    async with session_factory() as session:
        _, business, _, _, offer = await _setup(session, seeder_for, **overrides)

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.OFFER_UNAVAILABLE
    assert outcome.message == message


@pytest.mark.asyncio
async def test_offer_limit_reached(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed, business, _, _, offer = await _setup(session, seeder_for, max_redemptions=1)
        someone = await seed.user()
        other = await seed.membership(someone, expires_at=NOW + dt.timedelta(days=30))
        session.add(
            OfferRedemption(
                membership_id=other.id,
                offer_id=offer.id,
                business_id=business.id,
                redemption_key=redemption_key(other.id, offer.id, "member", "once"),
            )
        )
        await session.flush()

        outcome = await VerificationService(session).verify(_request(business, offer), now=NOW)

    assert outcome.status is VerificationStatus.LIMIT_REACHED


@pytest.mark.parametrize(("plan", "quota"), [("single", 1), ("duo", 2), ("family", 5), ("legacy", 1)])
def test_membership_pet_quota_follows_plan(plan, quota) -> None:
    assert Membership(plan_type=plan).pet_quota == quota


def test_locked_error_requires_an_expiry() -> None:
    state = LockoutState(locked=False, expires_at=None, recent_failures=3, remaining_attempts=7)

    with pytest.raises(ValueError):
        VerificationLockedError(state, remaining_minutes=0)
