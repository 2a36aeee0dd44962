"""
Event Ingestor Core Service.

Main service class that combines all ingestion functionality.
Inherits from mixins to provide storage, subscription and sweep methods.
"""

from settlement.config.settings import Settings
from settlement.repositories.unit_of_work import UnitOfWork

from .handlers import EventHandlers
from .storage_mixin import StorageMixin
from .subscription import EventSubscription, SubscriptionMixin
from .sweep_mixin import SweepMixin


class EventIngestor(StorageMixin, SubscriptionMixin, SweepMixin):
    """
    Blockchain event ingestion.

    Key features:
    - Idempotent storage keyed by (transaction_hash, log_index)
    - Live polling subscriptions per contract event
    - Webhook intake with payload validation
    - Sweep dispatching stored events to handlers
    """

    def __init__(
        self,
        uow: UnitOfWork,
        settings: Settings,
        handlers: EventHandlers | None = None,
    ) -> None:
        """
        Initialize ingestor.

        Args:
            uow: Unit of work
            settings: Application settings (poll interval)
            handlers: Event handler table
        """
        self.uow = uow
        self.settings = settings
        self.handlers = handlers or EventHandlers()
        self._subscriptions: list[EventSubscription] = []

    @property
    def subscriptions(self) -> list[EventSubscription]:
        return list(self._subscriptions)
