"""
Event Ingestor.

Stores blockchain events from log filters and webhooks exactly once and
dispatches them to handlers.
"""

from .core import EventIngestor
from .handlers import EventHandlers
from .schemas import IngestOutcome, IngestResult, WebhookPayload
from .subscription import EventSubscription

__all__ = [
    "EventHandlers",
    "EventIngestor",
    "EventSubscription",
    "IngestOutcome",
    "IngestResult",
    "WebhookPayload",
]
