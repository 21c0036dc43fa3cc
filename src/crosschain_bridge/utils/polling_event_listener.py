"""
Polling-based event listener utility for blockchain event monitoring.
"""

import asyncio
import logging
from typing import Any

from web3.contract import Contract
from web3.types import EventData

from .chain_client import DEFAULT_POLL_INTERVAL, ChainClient

DEFAULT_LOOKBACK_BLOCKS = 1000


class PollingEventListener:
    """
    Utility for polling contract events via HTTP RPC.

    Starts ``lookback_blocks`` behind the chain head so that events emitted
    shortly before the listener was created are not missed.
    """

    def __init__(
        self,
        client: ChainClient,
        contract: Contract,
        event_name: str,
        argument_filters: dict[str, Any] | None = None,
        lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS,
    ):
        """
        Initialize the polling event listener.

        Args:
            client: Client connected to the chain the contract lives on
            contract: Contract emitting the event
            event_name: Name of the event to listen for
            argument_filters: Filters on indexed event arguments
            lookback_blocks: Number of blocks to look back on the first poll
        """
        if not hasattr(contract.events, event_name):
            raise ValueError(f"Event {event_name} not found in contract ABI")

        self.client = client
        self.contract = contract
        self.event_name = event_name
        self.argument_filters = argument_filters or {}
        self.lookback_blocks = lookback_blocks
        self.event_obj = getattr(contract.events, event_name)

        self.last_processed_block: int | None = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def poll_for_events(self) -> list[EventData]:
        """
        Fetch events emitted since the last poll.

        Connection errors propagate; ``last_processed_block`` only advances
        after a successful query.
        """
        current_block = self.client.block_number

        if self.last_processed_block is None:
            from_block = max(0, current_block - self.lookback_blocks)
        elif current_block <= self.last_processed_block:
            return []
        else:
            from_block = self.last_processed_block + 1

        events = self.event_obj.get_logs(
            from_block=from_block,
            to_block=current_block,
            argument_filters=self.argument_filters,
        )
        self.last_processed_block = current_block

        if events:
            self.logger.info(
                f"Found {len(events)} {self.event_name} events "
                f"in blocks {from_block}-{current_block}"
            )
        return list(events)

    async def wait_for_event(self, interval: float = DEFAULT_POLL_INTERVAL) -> EventData:
        """
        Block until the first matching event is observed.

        Args:
            interval: Polling interval in seconds

        Returns:
            The first matching event
        """
        self.logger.info(
            f"Waiting for {self.event_name} on {self.contract.address} "
            f"with filters {self.argument_filters}"
        )
        while True:
            events = self.poll_for_events()
            if events:
                return events[0]
            await asyncio.sleep(interval)

    def search_history(self, chunk_size: int | None = None) -> EventData | None:
        """
        Search backwards from the chain head for the most recent matching event.

        Queries consecutive ranges of ``chunk_size`` blocks (``lookback_blocks``
        by default) down to genesis, so events of any age are found without a
        single unbounded ``get_logs`` call.

        Returns:
            The latest matching event, or None if the chain holds none
        """
        chunk_size = chunk_size or self.lookback_blocks
        to_block = self.client.block_number

        while to_block >= 0:
            from_block = max(0, to_block - chunk_size + 1)
            events = self.event_obj.get_logs(
                from_block=from_block,
                to_block=to_block,
                argument_filters=self.argument_filters,
            )
            if events:
                return events[-1]
            to_block = from_block - 1

        return None
