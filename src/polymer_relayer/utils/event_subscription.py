"""
Polling-based event subscription for one contract event.

"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from web3.types import EventData

from .chain_client import ChainClient

EventCallback = Callable[[EventData], Awaitable[Any]]


class EventSubscription:
    """
    Delivers each matching contract log to a callback by polling get_logs.

    Every log is handed to the callback in its own task, so deliveries for
    distinct logs (or a redelivered log) may run concurrently and finish in any
    order. Exceptions raised by the callback are logged and never stop the
    subscription.
    """

    def __init__(
        self,
        client: ChainClient,
        event_name: str = "ValueSet",
        polling_interval: float = 2.0,
        max_block_range: int = 1000,
    ) -> None:
        """
        Initialize the subscription.

        Args:
            client: Chain client for the source chain
            event_name: Name of the contract event to watch
            polling_interval: Seconds between polls
            max_block_range: Most blocks covered by a single get_logs call
        """
        self.client = client
        self.event_name = event_name
        self.polling_interval = polling_interval
        self.max_block_range = max_block_range

        self.callback: EventCallback | None = None
        self.last_processed_block: int | None = None
        self.is_running = False
        self._poll_task: asyncio.Task | None = None
        self._handlers: set[asyncio.Task] = set()

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def task(self) -> asyncio.Task | None:
        return self._poll_task

    async def start(self, callback: EventCallback) -> int:
        """
        Register the callback and start polling in the background.

        Args:
            callback: Async function to call for each log

        Returns:
            The chain head at subscription time
        """
        if self.is_running:
            raise RuntimeError(f"Subscription for {self.event_name} already running")

        self.callback = callback
        head = await self.client.get_block_number()
        self.last_processed_block = head

        self.is_running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        self.logger.info(
            f"Subscribed to {self.event_name} events on {self.client.chain.name} "
            f"from block {self.last_processed_block + 1} every {self.polling_interval}s"
        )
        return head

    async def poll_for_events(self) -> int:
        """
        Poll once for events since the last processed block.

        A backlog larger than max_block_range (e.g. after an RPC outage) is
        fetched in consecutive windows. The cursor advances after each
        successful window, so a failure resumes from the first unfetched block.

        Returns:
            Number of logs dispatched
        """
        current_block = await self.client.get_block_number()
        if self.last_processed_block is not None and current_block <= self.last_processed_block:
            return 0

        from_block = self.last_processed_block + 1 if self.last_processed_block is not None else current_block
        dispatched = 0
        while from_block <= current_block:
            to_block = min(current_block, from_block + self.max_block_range - 1)
            events = await self.client.get_logs(self.event_name, from_block, to_block)

            if events:
                self.logger.info(
                    f"Found {len(events)} new {self.event_name} events "
                    f"in blocks {from_block}-{to_block}"
                )
                for event in events:
                    self._dispatch(event)
                dispatched += len(events)

            self.last_processed_block = to_block
            from_block = to_block + 1

        return dispatched

    def _dispatch(self, event: EventData) -> None:
        task = asyncio.create_task(self._deliver(event))
        self._handlers.add(task)
        task.add_done_callback(self._handlers.discard)

    async def _deliver(self, event: EventData) -> None:
        if self.callback is None:
            return
        try:
            await self.callback(event)
        except Exception as e:
            self.logger.error(f"Error in {self.event_name} callback: {e}", exc_info=True)

    async def _poll_loop(self) -> None:
        while self.is_running:
            try:
                await asyncio.sleep(self.polling_interval)
                await self.poll_for_events()
            except asyncio.CancelledError:
                self.logger.info("Polling cancelled")
                raise
            except Exception as e:
                self.logger.error(f"Error polling for {self.event_name} events: {e}")

    async def stop(self) -> None:
        """Stop polling and wait for in-flight callbacks to finish."""
        self.logger.info(f"Stopping subscription for {self.event_name} events")
        self.is_running = False
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        if self._handlers:
            await asyncio.gather(*self._handlers, return_exceptions=True)

    def get_status(self) -> dict[str, Any]:
        """
        Get current status of the subscription.

        Returns:
            Dictionary with status information
        """
        return {
            "is_running": self.is_running,
            "last_processed_block": self.last_processed_block,
            "in_flight_callbacks": len(self._handlers),
            "event_name": self.event_name,
            "chain": self.client.chain.name,
        }
