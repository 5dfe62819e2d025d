from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import ConfigDict

from ._base import CamelModel, _to_camel


class AlertResponse(CamelModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel, from_attributes=True)

    id: UUID
    alert_type: str
    title: str
    message: str
    priority: str
    data: dict[str, Any]
    expires_at: datetime | None = None


class AlertGenerationResponse(CamelModel):
    message: str
    notifications_sent: int
    alerts: list[AlertResponse]
