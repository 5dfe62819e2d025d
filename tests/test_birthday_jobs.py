import datetime as dt

import pytest
from sqlalchemy import select

from wooffy_api.jobs import notify_business_birthdays, notify_pet_birthdays
from wooffy_api.models.notification import Notification
from wooffy_api.models.redemption import OfferRedemption
from wooffy_api.services.birthdays import days_until, is_anniversary, next_occurrence, observed_on
from wooffy_api.services.notifications import InMemoryEmailBackend

NOW = dt.datetime(2024, 6, 13, 7, 0, tzinfo=dt.timezone.utc)


def test_leap_day_birthdays_are_observed_on_february_28() -> None:
    leap_birthday = dt.date(2020, 2, 29)

    assert observed_on(2, 29, 2023) == dt.date(2023, 2, 28)
    assert observed_on(2, 29, 2024) == dt.date(2024, 2, 29)
    assert next_occurrence(leap_birthday, dt.date(2023, 3, 1)) == dt.date(2024, 2, 29)
    assert days_until(leap_birthday, dt.date(2023, 2, 26)) == 2
    assert is_anniversary(leap_birthday, dt.date(2025, 2, 28))


def test_days_until_wraps_to_next_year() -> None:
    assert days_until(dt.date(2019, 1, 2), dt.date(2024, 12, 31)) == 2
    assert days_until(dt.date(2019, 12, 31), dt.date(2024, 12, 31)) == 0


async def _customer_pet(session, seed, business, offer, *, birthday, owner_name="Maria Georgiou", breed="Beagle"):
    owner = await seed.user(full_name=owner_name)
    membership = await seed.membership(owner, expires_at=NOW + dt.timedelta(days=300))
    pet = await seed.pet(membership, owner=owner, name="Bella", breed=breed, birthday=birthday)
    session.add(
        OfferRedemption(
            membership_id=membership.id,
            offer_id=offer.id,
            business_id=business.id,
            redemption_key=f"{membership.id}:{offer.id}:member:once",
        )
    )
    await session.flush()
    return owner, pet


@pytest.mark.asyncio
async def test_business_birthday_reminder_for_customer_pet(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed = seeder_for(session)
        shop_owner = await seed.user(full_name="Shop Owner", email="owner@example.com")
        business = await seed.business(
            shop_owner,
            name="Paws Cafe",
            email="hello@pawscafe.example",
            birthday_reminders=True,
            custom_message="Free pupcake!",
        )
        offer = await seed.offer(business)
        owner, pet = await _customer_pet(session, seed, business, offer, birthday=dt.date(2020, 6, 15))
        # not a customer of this business
        stranger = await seed.user()
        await seed.pet(None, owner=stranger, name="Ghost", birthday=dt.date(2020, 6, 14))
        await session.commit()

    backend = InMemoryEmailBackend()
    summary = await notify_business_birthdays(session_factory=session_factory, now=NOW, email_backend=backend)

    assert summary["notificationsSent"] == 1
    assert summary["emailsSent"] == 1
    assert summary["businessesChecked"] == 1

    async with session_factory() as session:
        notification = (await session.execute(select(Notification))).scalar_one()
    assert notification.user_id == shop_owner.id
    assert notification.type == "business_birthday_reminder"
    assert notification.title == "🎂 Upcoming Pet Birthday: Bella"
    assert notification.message == (
        "Maria Georgiou's pet Bella (Beagle) is turning 4 in 2 days! Consider sending them a birthday offer."
    )
    assert notification.data["days_until"] == 2
    assert notification.data["age"] == 4
    assert notification.data["pet_id"] == str(pet.id)
    assert notification.data["owner_user_id"] == str(owner.id)
    assert notification.data["business_id"] == str(business.id)

    (message,) = backend.sent_messages
    assert message["To"] == "hello@pawscafe.example"
    assert "Free pupcake!" in message.get_body(("plain",)).get_content()

    rerun = await notify_business_birthdays(session_factory=session_factory, now=NOW, email_backend=backend)
    assert rerun["notificationsSent"] == 0
    assert rerun["skipped"] == 1
    assert len(backend.sent_messages) == 1


@pytest.mark.asyncio
async def test_business_birthday_today_and_outside_window(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed = seeder_for(session)
        shop_owner = await seed.user(email="owner@shop.example")
        business = await seed.business(shop_owner, birthday_reminders=True)
        offer = await seed.offer(business)
        await _customer_pet(session, seed, business, offer, birthday=dt.date(2021, 6, 13), owner_name=None, breed=None)
        await _customer_pet(session, seed, business, offer, birthday=dt.date(2021, 6, 20))
        await session.commit()

    backend = InMemoryEmailBackend()
    summary = await notify_business_birthdays(session_factory=session_factory, now=NOW, email_backend=backend)

    assert summary["notificationsSent"] == 1
    async with session_factory() as session:
        notification = (await session.execute(select(Notification))).scalar_one()
    assert notification.title == "🎂 It's Bella's Birthday Today!"
    assert notification.message.startswith("A customer's pet Bella (Pet) is turning 3 today! 🎉")
    # falls back to the owner's address when the business has none
    assert backend.sent_messages[0]["To"] == "owner@shop.example"


@pytest.mark.asyncio
async def test_business_birthdays_without_opted_in_businesses(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed = seeder_for(session)
        shop_owner = await seed.user()
        await seed.business(shop_owner)
        await session.commit()

    summary = await notify_business_birthdays(session_factory=session_factory, now=NOW)

    assert summary["message"] == "No businesses with birthday reminders enabled"
    assert summary["notificationsSent"] == 0


@pytest.mark.asyncio
async def test_pet_birthday_greets_owner_once(session_factory, seeder_for) -> None:
    async with session_factory() as session:
        seed = seeder_for(session)
        owner = await seed.user(full_name="Andreas", email="andreas@example.com")
        membership = await seed.membership(owner, expires_at=NOW + dt.timedelta(days=100))
        await seed.pet(membership, owner=owner, name="Max", birthday=dt.date(2019, 6, 13))
        await seed.pet(membership, owner=owner, name="Puppy", birthday=dt.date(2024, 6, 13))
        await seed.pet(membership, owner=owner, name="Later", birthday=dt.date(2019, 6, 14))
        await session.commit()

    backend = InMemoryEmailBackend()
    summary = await notify_pet_birthdays(session_factory=session_factory, now=NOW, email_backend=backend)

    assert summary["notificationsSent"] == 1
    assert [message["Subject"] for message in backend.sent_messages] == ["🎂 Happy Birthday, Max!"]
    async with session_factory() as session:
        notification = (await session.execute(select(Notification))).scalar_one()
    assert notification.type == "pet_birthday"
    assert notification.data["age"] == 5
    assert notification.message.startswith("Max is turning 5 years old today!")

    rerun = await notify_pet_birthdays(session_factory=session_factory, now=NOW, email_backend=backend)
    assert rerun["notificationsSent"] == 0
