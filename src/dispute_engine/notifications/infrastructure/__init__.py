"""
Notification Infrastructure Layer
=================================

Concrete channel sinks and the built-in template / rule catalogue.
"""

from dispute_engine.notifications.infrastructure.channels import (
    LoggingChannelSink,
    InAppChannelSink,
    WebhookChannelSink,
    CircuitBreaker,
    CircuitState,
)
from dispute_engine.notifications.infrastructure.defaults import (
    default_templates,
    default_rules,
)

__all__ = [
    "LoggingChannelSink",
    "InAppChannelSink",
    "WebhookChannelSink",
    "CircuitBreaker",
    "CircuitState",
    "default_templates",
    "default_rules",
]
