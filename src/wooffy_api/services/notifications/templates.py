"""Email and in-app copy for the reminder jobs."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Sequence

EXPIRY_3_DAYS = "expiry_3_days"
EXPIRY_7_DAYS = "expiry_7_days"
EXPIRY_30_DAYS = "expiry_30_days"

SIGN_OFF = "The Wooffy Team"


@dataclass
class RenderedTemplate:
    subject: str
    text_body: str
    html_body: str
    # Short copy stored on the in-app notification row.
    summary: str


def _greeting(contact_name: str | None) -> str:
    return f"Hi {contact_name}," if contact_name else "Hi there,"


def _render(
    subject: str,
    summary: str,
    *,
    contact_name: str | None,
    paragraphs: Sequence[str] = (),
    link: tuple[str, str] | None = None,
) -> RenderedTemplate:
    greeting = _greeting(contact_name)

    text_lines = [greeting, "", summary]
    for paragraph in paragraphs:
        text_lines.extend(["", paragraph])
    if link is not None:
        label, url = link
        text_lines.extend(["", f"{label}: {url}"])
    text_lines.extend(["", "Thanks,", SIGN_OFF])

    paragraphs_html = "".join(f"\n    <p>{html.escape(paragraph)}</p>" for paragraph in paragraphs)
    link_html = ""
    if link is not None:
        label, url = link
        link_html = f'\n    <p><a href="{html.escape(url, quote=True)}">{html.escape(label)}</a></p>'

    html_body = f"""<html>
  <body>
    <p>{html.escape(greeting)}</p>
    <p>{html.escape(summary)}</p>{paragraphs_html}{link_html}
    <p>Thanks,<br />{SIGN_OFF}</p>
  </body>
</html>"""

    return RenderedTemplate(
        subject=subject,
        text_body="\n".join(text_lines),
        html_body=html_body,
        summary=summary,
    )


def render_membership_expiry(
    tier: str,
    *,
    contact_name: str | None,
    expires_on: str,
    days_left: int,
    renew_url: str,
) -> RenderedTemplate:
    """Render the reminder copy for one expiry tier."""

    if tier == EXPIRY_3_DAYS:
        subject = "⚠️ Membership Expiring in 3 Days!"
        summary = (
            f"Your Wooffy membership expires on {expires_on}. "
            "Renew now to keep enjoying exclusive discounts!"
        )
    elif tier == EXPIRY_7_DAYS:
        subject = "📅 Membership Expiring Soon"
        summary = (
            f"Your membership expires in {days_left} days. "
            "Renew early and save with our loyalty discount!"
        )
    elif tier == EXPIRY_30_DAYS:
        subject = "🔔 Membership Renewal Reminder"
        summary = (
            f"Your Wooffy membership expires on {expires_on}. "
            "Plan ahead and renew to continue saving!"
        )
    else:
        raise ValueError(f"Unknown expiry tier: {tier}")

    return _render(
        subject,
        summary,
        contact_name=contact_name,
        link=("Renew your membership", renew_url),
    )


def render_membership_expired(*, contact_name: str | None, member_number: str) -> RenderedTemplate:
    return _render(
        "Your Membership Has Expired",
        "Your Wooffy membership has expired. You still have access to our Community Hub, "
        "but upgrade to unlock all premium features!",
        contact_name=contact_name,
        paragraphs=[f"Member number: {member_number}"],
    )


def _age_text(age: int) -> str:
    return "1 year old" if age == 1 else f"{age} years old"


def render_business_birthday_reminder(
    *,
    business_name: str,
    owner_name: str,
    pet_name: str,
    pet_breed: str | None,
    age: int,
    days_until: int,
    custom_message: str | None = None,
) -> RenderedTemplate:
    """Render the partner-facing reminder about a customer's pet birthday."""

    if days_until == 0:
        subject = f"🎂 It's {pet_name}'s Birthday Today!"
        when = "today! 🎉"
    else:
        subject = f"🎂 Upcoming Pet Birthday: {pet_name}"
        when = f"in {days_until} day{'s' if days_until != 1 else ''}!"

    summary = (
        f"{owner_name}'s pet {pet_name} ({pet_breed or 'Pet'}) is turning {age} {when} "
        "Consider sending them a birthday offer."
    )
    paragraphs = []
    if custom_message:
        paragraphs.append(f"Your saved birthday message: {custom_message}")
    return _render(subject, summary, contact_name=business_name, paragraphs=paragraphs)


def render_pet_birthday(*, contact_name: str | None, pet_name: str, age: int) -> RenderedTemplate:
    return _render(
        f"🎂 Happy Birthday, {pet_name}!",
        f"{pet_name} is turning {_age_text(age)} today! 🎉🐾 Wishing your furry friend the happiest "
        "of birthdays. Give them an extra treat from us!",
        contact_name=contact_name,
    )


def render_member_anniversary(*, contact_name: str | None, years: int) -> RenderedTemplate:
    year_text = "1 year" if years == 1 else f"{years} years"
    return _render(
        f"🎊 Happy {year_text} with Wooffy!",
        f"Hey {contact_name or 'there'}, today marks {year_text} since you joined the Wooffy family! "
        "Thank you for being an amazing pet parent. We're so glad you're part of the pack! 🐾",
        contact_name=contact_name,
    )


__all__ = [
    "EXPIRY_3_DAYS",
    "EXPIRY_7_DAYS",
    "EXPIRY_30_DAYS",
    "RenderedTemplate",
    "render_business_birthday_reminder",
    "render_member_anniversary",
    "render_membership_expired",
    "render_membership_expiry",
    "render_pet_birthday",
]
