"""Pet health assistant chat proxy."""

from .client import AssistantConfigurationError, AssistantGatewayClient, AssistantGatewayError
from .prompt import AssistantContext, build_system_prompt, load_context, sanitize_messages
from .rate_limit import get_assistant_rate_limiter, rate_limit_identifier

__all__ = [
    "AssistantConfigurationError",
    "AssistantContext",
    "AssistantGatewayClient",
    "AssistantGatewayError",
    "build_system_prompt",
    "get_assistant_rate_limiter",
    "load_context",
    "rate_limit_identifier",
    "sanitize_messages",
]
