"""High-level notification service for in-app notifications and emails."""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wooffy_api.core.settings import Settings, get_settings
from wooffy_api.models.notification import Notification, NotificationDispatchKey

from .backend import EmailBackend, SMTPEmailBackend
from .templates import RenderedTemplate


def build_email_backend(settings: Settings | None = None) -> Optional[EmailBackend]:
    """Return the SMTP backend, or ``None`` when SMTP is not configured."""

    settings = settings or get_settings()
    if not settings.smtp_host or not settings.smtp_sender_email:
        return None

    return SMTPEmailBackend(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        sender_email=settings.smtp_sender_email,
    )


class NotificationService:
    """Coordinates idempotency keys, in-app rows and best-effort email delivery.

    The in-app notification is the authoritative record. Callers commit the
    claimed key together with the notification and only then hand the email
    to :meth:`send_email`, so a delivery failure never rolls back the reminder.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        backend: Optional[EmailBackend] = None,
    ) -> None:
        self._db = db_session
        self._backend = backend if backend is not None else self._build_default_backend()

    async def claim_dispatch_key(
        self,
        entity_id: str,
        notification_type: str,
        period: str,
        *,
        user_id: UUID | None = None,
    ) -> bool:
        """Insert the idempotency key; ``False`` means it was already claimed."""

        try:
            async with self._db.begin_nested():
                self._db.add(
                    NotificationDispatchKey(
                        entity_id=entity_id,
                        notification_type=notification_type,
                        period=period,
                        user_id=user_id,
                    )
                )
        except IntegrityError:
            logger.debug(
                "Dispatch key already claimed",
                entity_id=entity_id,
                notification_type=notification_type,
                period=period,
            )
            return False
        return True

    async def create_notification(
        self,
        user_id: UUID,
        notification_type: str,
        *,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            data=data or {},
        )
        self._db.add(notification)
        await self._db.flush()
        return notification

    async def send_email(
        self,
        recipient: str | None,
        template: RenderedTemplate,
        *,
        event_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Deliver ``template`` and report whether it went out.

        Delivery errors are logged and reported as ``False``; they never
        propagate to the caller.
        """

        if self._backend is None or not recipient:
            return False

        try:
            await self._backend.send_email(
                recipient,
                template.subject,
                template.text_body,
                body_html=template.html_body,
            )
        except Exception as exc:  # noqa: BLE001 - email is best effort
            logger.warning(
                "Notification email failed",
                event_type=event_type,
                recipient=recipient,
                error=str(exc),
            )
            return False

        logger.info("Notification email sent", event_type=event_type, recipient=recipient, metadata=metadata or {})
        return True

    def _build_default_backend(self) -> Optional[EmailBackend]:
        return build_email_backend()


__all__ = ["NotificationService", "build_email_backend"]
