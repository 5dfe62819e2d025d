from __future__ import annotations

from ._base import CamelModel


class ChatResponse(CamelModel):
    reply: str
