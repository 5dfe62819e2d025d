"""SQLAlchemy models package."""

from .business import Business, BusinessBirthdaySettings  # noqa: F401
from .membership import Membership, MembershipPlan, Pet, PetType  # noqa: F401
from .notification import (  # noqa: F401
    Notification,
    NotificationDispatchKey,
    NotificationType,
    ProactiveAlert,
)
from .offer import DiscountType, Offer, RedemptionFrequency, RedemptionScope  # noqa: F401
from .redemption import OfferRedemption, VerificationAttempt  # noqa: F401
from .user import User  # noqa: F401
