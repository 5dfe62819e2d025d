"""Notification service package."""

from .backend import EmailBackend, InMemoryEmailBackend, SMTPEmailBackend
from .service import NotificationService, build_email_backend
from .templates import RenderedTemplate

__all__ = [
    "EmailBackend",
    "SMTPEmailBackend",
    "InMemoryEmailBackend",
    "NotificationService",
    "RenderedTemplate",
    "build_email_backend",
]
