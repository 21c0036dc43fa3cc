"""
Polygon zkEVM relay strategy.

Bridge deposits in both directions are claimed on the destination bridge
with a Merkle proof served by the zkEVM bridge service, once the service
reports the deposit as ready for claim.
"""

import logging
from typing import Any

import httpx
from hexbytes import HexBytes
from web3.contract import Contract
from web3.types import TxReceipt

from ..errors import RelayAlreadyExecutedError, RelayNotReadyError
from ..utils.chain_client import ChainClient
from .base import BaseRelayerService

logger = logging.getLogger(__name__)

LEAF_TYPE_ASSET = 0
LEAF_TYPE_MESSAGE = 1
BRIDGE_SERVICE_TIMEOUT = 30  # seconds


class PolygonZkEVMRelayerService(BaseRelayerService):
    DEFAULT_CONFIG = {
        1101: {
            "l1_bridge": "0x2a3DD3EB832aF982ec71669E178424b10Dca2EDe",
            "l2_bridge": "0x2a3DD3EB832aF982ec71669E178424b10Dca2EDe",
            "bridge_service_url": "https://bridge-api.zkevm-rpc.com",
        },
        1442: {
            "l1_bridge": "0xF6BEEeBB578e214CA9E23B0e9683454Ff88Ed2A7",
            "l2_bridge": "0xF6BEEeBB578e214CA9E23B0e9683454Ff88Ed2A7",
            "bridge_service_url": "https://bridge-api.public.zkevm-test.net",
        },
    }
    REQUIRED_CONFIG = ("l1_bridge", "l2_bridge", "bridge_service_url")

    async def relay_tx_to_l1(self) -> str:
        receipt = self.get_l2_receipt()
        return await self.claim_deposit(
            receipt,
            source_client=self.l2_client,
            source_bridge=self.l2_client.contract(self.config["l2_bridge"], "PolygonZkEVMBridge"),
            destination_client=self.l1_client,
            destination_bridge=self.l1_client.contract(self.config["l1_bridge"], "PolygonZkEVMBridge"),
        )

    async def relay_l1_message(self, l1_transaction_hash: str) -> None:
        receipt = self.get_l1_receipt(l1_transaction_hash)
        await self.claim_deposit(
            receipt,
            source_client=self.l1_client,
            source_bridge=self.l1_client.contract(self.config["l1_bridge"], "PolygonZkEVMBridge"),
            destination_client=self.l2_client,
            destination_bridge=self.l2_client.contract(self.config["l2_bridge"], "PolygonZkEVMBridge"),
        )

    async def claim_deposit(
        self,
        receipt: TxReceipt,
        source_client: ChainClient,
        source_bridge: Contract,
        destination_client: ChainClient,
        destination_bridge: Contract,
    ) -> str:
        """
        Claim the bridge deposit made in ``receipt`` on the destination bridge.

        Returns:
            Hash of the claim transaction

        Raises:
            RelayAlreadyExecutedError: If the deposit was claimed before
            RelayNotReadyError: If the bridge service does not allow the claim yet
        """
        deposits = source_client.decode_events(source_bridge, "BridgeEvent", receipt)
        if not deposits:
            raise ValueError(f"No BridgeEvent found in {self.transaction_hash_of(receipt)}")

        deposit = deposits[0]["args"]
        deposit_count = deposit["depositCount"]
        if destination_bridge.functions.isClaimed(deposit_count).call():
            raise RelayAlreadyExecutedError(f"deposit {deposit_count} was already claimed")

        query = {"net_id": source_bridge.functions.networkID().call(), "deposit_cnt": deposit_count}
        status = await self.bridge_service_get("/bridge", query)
        if not status["deposit"]["ready_for_claim"]:
            raise RelayNotReadyError(f"Deposit {deposit_count} is not ready for claim yet")

        proof = (await self.bridge_service_get("/merkle-proof", query))["proof"]

        if deposit["leafType"] == LEAF_TYPE_MESSAGE:
            claim_function = destination_bridge.functions.claimMessage
        else:
            claim_function = destination_bridge.functions.claimAsset

        claim = claim_function(
            [HexBytes(node) for node in proof["merkle_proof"]],
            deposit_count,
            HexBytes(proof["main_exit_root"]),
            HexBytes(proof["rollup_exit_root"]),
            deposit["originNetwork"],
            deposit["originAddress"],
            deposit["destinationNetwork"],
            deposit["destinationAddress"],
            deposit["amount"],
            deposit["metadata"],
        )
        logger.info(f"Claiming deposit {deposit_count} on {destination_client.rpc_url}")
        claim_receipt = await destination_client.send_and_confirm(claim)
        return self.transaction_hash_of(claim_receipt)

    async def bridge_service_get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """
        Query the zkEVM bridge service.

        Raises:
            httpx.HTTPStatusError: If the service answers with an error status
        """
        async with httpx.AsyncClient(
            base_url=self.config["bridge_service_url"],
            timeout=BRIDGE_SERVICE_TIMEOUT,
        ) as client:
            logger.debug(f"Querying bridge service {path}: {params}")
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
