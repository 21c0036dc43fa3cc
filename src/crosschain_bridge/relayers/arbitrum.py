"""
Arbitrum Nitro relay strategy.

L2 to L1 messages are emitted by the ArbSys precompile and become
executable on the L1 outbox once the rollup node that includes them is
confirmed, i.e. after the challenge period.
"""

import logging

from web3 import Web3

from ..errors import RelayAlreadyExecutedError, RelayNotReadyError
from .base import BaseRelayerService

logger = logging.getLogger(__name__)

ARB_SYS_ADDRESS = "0x0000000000000000000000000000000000000064"
NODE_INTERFACE_ADDRESS = "0x00000000000000000000000000000000000000C8"

# Position of createdAtBlock in the rollup Node struct
NODE_CREATED_AT_BLOCK = 10


class ArbitrumRelayerService(BaseRelayerService):
    DEFAULT_CONFIG = {
        42161: {
            "rollup": "0x5eF0D09d1E6204141B4d37530808eD19f60FBa35",
            "outbox": "0x0B9857ae2D4A3DBe74ffE1d7DF045bb7F96E4840",
        },
        421613: {
            "rollup": "0x45e5cAea8768F42B385A366D3551Ad1e0cbFAb17",
            "outbox": "0x45Af9Ed1D03703e480CE7d328fB684bb67DA5049",
        },
    }
    REQUIRED_CONFIG = ("rollup", "outbox")

    async def relay_tx_to_l1(self) -> str:
        receipt = self.get_l2_receipt()

        arb_sys = self.l2_client.contract(ARB_SYS_ADDRESS, "ArbSys")
        messages = self.l2_client.decode_events(arb_sys, "L2ToL1Tx", receipt)
        if not messages:
            raise ValueError(f"No L2ToL1Tx event found in {self.l2_transaction_hash}")

        message = messages[0]["args"]
        position = message["position"]

        outbox = self.l1_client.contract(self.config["outbox"], "ArbitrumOutbox")
        if outbox.functions.isSpent(position).call():
            raise RelayAlreadyExecutedError(f"outbox entry {position} was already executed")

        send_count = self.get_confirmed_send_count()
        if position >= send_count:
            raise RelayNotReadyError(
                f"Outbox entry {position} is not confirmed yet (confirmed sends: {send_count}), "
                "the rollup node is still in its challenge period"
            )

        node_interface = self.l2_client.contract(NODE_INTERFACE_ADDRESS, "NodeInterface")
        _send, _root, proof = node_interface.functions.constructOutboxProof(send_count, position).call()

        execute = outbox.functions.executeTransaction(
            proof,
            position,
            message["caller"],
            message["destination"],
            message["arbBlockNum"],
            message["ethBlockNum"],
            message["timestamp"],
            message["callvalue"],
            message["data"],
        )
        l1_receipt = await self.l1_client.send_and_confirm(execute)
        return self.transaction_hash_of(l1_receipt)

    def get_confirmed_send_count(self) -> int:
        """Number of L2 to L1 sends covered by the latest confirmed rollup node."""
        rollup = self.l1_client.contract(self.config["rollup"], "ArbitrumRollup")
        node_number = rollup.functions.latestConfirmed().call()
        node = rollup.functions.getNode(node_number).call()

        confirmations = rollup.events.NodeConfirmed.get_logs(
            from_block=node[NODE_CREATED_AT_BLOCK],
            argument_filters={"nodeNum": node_number},
        )
        if not confirmations:
            logger.debug(f"No NodeConfirmed event for node {node_number}")
            return 0

        l2_block_hash = Web3.to_hex(confirmations[-1]["args"]["blockHash"])
        l2_block = self.l2_client.get_raw_block(l2_block_hash)
        return int(l2_block["sendCount"], 16)
