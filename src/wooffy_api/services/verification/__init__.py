"""Member code verification at the point of sale."""

from .service import (
    AvailablePet,
    VerificationLockedError,
    VerificationOutcome,
    VerificationRequest,
    VerificationService,
    VerificationStatus,
)

__all__ = [
    "AvailablePet",
    "VerificationLockedError",
    "VerificationOutcome",
    "VerificationRequest",
    "VerificationService",
    "VerificationStatus",
]
