"""
Event Ingestor Subscription.

Polling log filters running as background tasks.
"""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

from loguru import logger
from web3 import Web3

from settlement.contracts.interfaces import get_interface
from settlement.models.enums import ContractType
from settlement.services.blockchain.network_registry import NetworkHandle
from settlement.services.blockchain.rpc_wrapper import with_timeout
from settlement.utils.exceptions import ContractInteractionError
from settlement.utils.security import mask_address

from .schemas import IngestOutcome, IngestResult

EventCallback = Callable[[Any, IngestResult], Awaitable[None]]


class EventSubscription:
    """
    One contract event filter polled on a background task.

    Stored entries are passed to the callback; callback errors are logged
    and polling continues.
    """

    def __init__(
        self,
        ingestor: Any,
        network_id: int,
        contract_id: int | None,
        address: str,
        event_name: str,
        handle: NetworkHandle,
        event_filter: Any,
        poll_interval: float,
        on_event: EventCallback | None = None,
    ) -> None:
        self.ingestor = ingestor
        self.network_id = network_id
        self.contract_id = contract_id
        self.address = address
        self.event_name = event_name
        self.handle = handle
        self.event_filter = event_filter
        self.poll_interval = poll_interval
        self.on_event = on_event
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(
            self._poll(), name=f"events-{self.handle.name}-{self.event_name}"
        )

    async def poll_once(self) -> int:
        """
        Fetch and store new entries once.

        Returns:
            Number of newly stored entries
        """
        entries = await with_timeout(
            self.event_filter.get_new_entries(),
            operation_name=f"poll {self.event_name}",
            network=self.handle.name,
        )
        stored = 0
        for entry in entries:
            result = await self.ingestor.store_log_entry(self.network_id, self.contract_id, entry)
            if result.outcome != IngestOutcome.STORED:
                continue
            stored += 1
            if self.on_event is None:
                continue
            try:
                await self.on_event(entry, result)
            except Exception:
                logger.exception(f"{self.event_name} callback failed for event {result.event_id}")
        return stored

    async def _poll(self) -> None:
        logger.info(
            f"Listening for {self.event_name} on {mask_address(self.address)} ({self.handle.name})"
        )
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.warning(f"{self.handle.name}: error polling {self.event_name}: {e}")
            await asyncio.sleep(self.poll_interval)

    async def stop(self) -> None:
        """Cancel polling and uninstall the node-side filter."""
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        filter_id = getattr(self.event_filter, "filter_id", None)
        if filter_id is None:
            return
        try:
            await self.handle.web3.eth.uninstall_filter(filter_id)
        except Exception as e:
            logger.warning(f"{self.handle.name}: could not uninstall {self.event_name} filter: {e}")
        logger.info(f"Stopped listening for {self.event_name} on {mask_address(self.address)}")


class SubscriptionMixin:
    """Mixin providing live event subscriptions."""

    async def listen(
        self,
        network_id: int,
        contract_id: int | None,
        address: str,
        contract_type: ContractType | str,
        event_name: str,
        handle: NetworkHandle,
        on_event: EventCallback | None = None,
    ) -> EventSubscription:
        """
        Subscribe to a contract event from the latest block on.

        Returns:
            Running EventSubscription

        Raises:
            ContractInteractionError: Event not in the contract interface
        """
        interface = get_interface(contract_type)
        if not interface.has_event(event_name):
            raise ContractInteractionError(
                f"event not in {interface.name} interface", address, event_name
            )

        contract = handle.web3.eth.contract(
            address=Web3.to_checksum_address(address), abi=interface.abi
        )
        event_filter = await with_timeout(
            contract.events[event_name].create_filter(from_block="latest"),
            operation_name=f"create {event_name} filter",
            network=handle.name,
        )

        subscription = EventSubscription(
            ingestor=self,
            network_id=network_id,
            contract_id=contract_id,
            address=address,
            event_name=event_name,
            handle=handle,
            event_filter=event_filter,
            poll_interval=self.settings.event_poll_interval,
            on_event=on_event,
        )
        subscription.start()
        self._subscriptions.append(subscription)
        return subscription

    async def close(self) -> None:
        """Stop every subscription."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.stop()
