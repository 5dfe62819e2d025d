import pytest

from wooffy_api.services.notifications.templates import (
    EXPIRY_3_DAYS,
    EXPIRY_7_DAYS,
    EXPIRY_30_DAYS,
    render_business_birthday_reminder,
    render_member_anniversary,
    render_membership_expiry,
    render_pet_birthday,
)


@pytest.mark.parametrize(
    ("tier", "subject", "fragment"),
    [
        (EXPIRY_3_DAYS, "⚠️ Membership Expiring in 3 Days!", "expires on 16/06/2024"),
        (EXPIRY_7_DAYS, "📅 Membership Expiring Soon", "expires in 6 days"),
        (EXPIRY_30_DAYS, "🔔 Membership Renewal Reminder", "Plan ahead"),
    ],
)
def test_membership_expiry_tiers(tier: str, subject: str, fragment: str) -> None:
    rendered = render_membership_expiry(
        tier,
        contact_name="Maria",
        expires_on="16/06/2024",
        days_left=6,
        renew_url="https://wooffy.example/membership",
    )

    assert rendered.subject == subject
    assert fragment in rendered.summary
    assert rendered.text_body.startswith("Hi Maria,")
    assert "Renew your membership: https://wooffy.example/membership" in rendered.text_body


def test_membership_expiry_rejects_unknown_tier() -> None:
    with pytest.raises(ValueError):
        render_membership_expiry("expiry_1_day", contact_name=None, expires_on="", days_left=1, renew_url="")


def test_business_birthday_reminder_copy() -> None:
    upcoming = render_business_birthday_reminder(
        business_name="Paws Cafe",
        owner_name="Maria",
        pet_name="Rex",
        pet_breed=None,
        age=1,
        days_until=1,
        custom_message="Free pup cup on us!",
    )
    today = render_business_birthday_reminder(
        business_name="Paws Cafe",
        owner_name="Maria",
        pet_name="Rex",
        pet_breed="Beagle",
        age=4,
        days_until=0,
    )

    assert upcoming.subject == "🎂 Upcoming Pet Birthday: Rex"
    assert "Maria's pet Rex (Pet) is turning 1 in 1 day!" in upcoming.summary
    assert "Your saved birthday message: Free pup cup on us!" in upcoming.text_body
    assert today.subject == "🎂 It's Rex's Birthday Today!"
    assert "is turning 4 today! 🎉" in today.summary
    assert "saved birthday message" not in today.text_body


def test_html_body_escapes_user_content() -> None:
    rendered = render_pet_birthday(contact_name="<b>Eve</b>", pet_name="Tom & Jerry", age=1)

    assert "&lt;b&gt;Eve&lt;/b&gt;" in rendered.html_body
    assert "Tom &amp; Jerry is turning 1 year old today!" in rendered.html_body
    assert "<b>Eve</b>" not in rendered.html_body


def test_anniversary_without_name() -> None:
    rendered = render_member_anniversary(contact_name=None, years=1)

    assert rendered.subject == "🎊 Happy 1 year with Wooffy!"
    assert rendered.summary.startswith("Hey there, today marks 1 year")
    assert rendered.text_body.startswith("Hi there,")
