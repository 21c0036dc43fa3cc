"""
Relayer program orchestrating one relay invocation.

The source strategy relays the L2 transaction to L1; the destination
strategy then completes delivery of whatever that L1 transaction sent on.
"""

import asyncio
import logging
import os

from .config import ProgramOptions, load_network_config
from .dispatch import create_relayer
from .relayers.base import BaseRelayerService, RelayerArgs
from .utils.chain_client import get_network_id

logger = logging.getLogger(__name__)

PARENT_PROCESS_CHECK_INTERVAL = 1  # seconds


class RelayerProgram:
    """Runs a relay from one rollup to another through L1."""

    def __init__(self, l2_relayer_from: BaseRelayerService, l2_relayer_to: BaseRelayerService):
        self.l2_relayer_from = l2_relayer_from
        self.l2_relayer_to = l2_relayer_to

    @classmethod
    async def create_from_args(cls, args: ProgramOptions) -> "RelayerProgram":
        """
        Resolve both network ids and create the matching relay strategies.

        Args:
            args: Validated program options

        Raises:
            UnsupportedNetworkError: If either network has no relay strategy
            ValueError: If a custom network configuration file is invalid
        """
        from_network_id = await get_network_id(args.l2_relay_from_rpc_url)
        to_network_id = await get_network_id(args.l2_relay_to_rpc_url)
        logger.info(f"Relaying from network {from_network_id} to network {to_network_id}")

        l2_relayer_from = create_relayer(
            from_network_id,
            RelayerArgs(
                l1_rpc_url=args.l1_rpc_url,
                l2_rpc_url=args.l2_relay_from_rpc_url,
                private_key=args.wallet_private_key,
                l2_transaction_hash=args.l2_transaction_hash,
                network_config=load_network_config(args.network_from),
            ),
        )
        l2_relayer_to = create_relayer(
            to_network_id,
            RelayerArgs(
                l1_rpc_url=args.l1_rpc_url,
                l2_rpc_url=args.l2_relay_to_rpc_url,
                private_key=args.wallet_private_key,
                l2_transaction_hash=args.l2_transaction_hash,
                network_config=load_network_config(args.network_to),
            ),
        )
        return cls(l2_relayer_from, l2_relayer_to)

    async def run(self) -> None:
        l1_transaction_hash = await self.l2_relayer_from.run()
        if l1_transaction_hash is None:
            logger.info("Message was relayed before and its L1 transaction is unknown, skipping finalization")
            return

        await self.l2_relayer_to.finalize(l1_transaction_hash)
        logger.info(f"Relay of {self.l2_relayer_from.l2_transaction_hash} complete")


async def kill_on_parent_process_change(
    start_ppid: int,
    interval: float = PARENT_PROCESS_CHECK_INTERVAL,
) -> None:
    """Return once the parent process is no longer ``start_ppid``."""
    while os.getppid() == start_ppid:
        await asyncio.sleep(interval)
    logger.warning(f"Parent process {start_ppid} is gone")
