"""
Boba relay strategy (OVM 1.0 cross domain messenger).

A message is proven by the state root of the L2 block that sent it, which
lives in a state batch appended to the StateCommitmentChain, plus account
and storage proofs of the L2 message passer.
"""

import logging
from typing import Any

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.types import EventData

from ..errors import RelayAlreadyExecutedError, RelayNotReadyError
from ..utils.blockchain_encoder import BlockchainEncoder
from .base import BaseRelayerService

logger = logging.getLogger(__name__)

OVM_L2_TO_L1_MESSAGE_PASSER_ADDRESS = "0x4200000000000000000000000000000000000000"
L2_CROSS_DOMAIN_MESSENGER_ADDRESS = "0x4200000000000000000000000000000000000007"


class BobaRelayerService(BaseRelayerService):
    DEFAULT_CONFIG = {
        288: {
            "l1_cross_domain_messenger": "0x6D4528d192dB72E282265D6092F4B872f9Dff69e",
            "state_commitment_chain": "0xdE7355C971A5B733fe2133753Abd7e5441d441Ec",
        },
    }
    REQUIRED_CONFIG = ("l1_cross_domain_messenger", "state_commitment_chain")

    async def relay_tx_to_l1(self) -> str:
        receipt = self.get_l2_receipt()

        l2_messenger = self.l2_client.contract(L2_CROSS_DOMAIN_MESSENGER_ADDRESS, "OVMCrossDomainMessenger")
        messages = self.l2_client.decode_events(l2_messenger, "SentMessage", receipt)
        if not messages:
            raise ValueError(f"No SentMessage event found in {self.l2_transaction_hash}")

        args = messages[0]["args"]
        relay_args = [args["target"], args["sender"], args["message"], args["messageNonce"]]
        xdomain_calldata = HexBytes(l2_messenger.encode_abi("relayMessage", args=relay_args))

        l1_messenger = self.l1_client.contract(self.config["l1_cross_domain_messenger"], "BobaL1CrossDomainMessenger")
        if l1_messenger.functions.successfulMessages(Web3.keccak(xdomain_calldata)).call():
            raise RelayAlreadyExecutedError(f"message from {self.l2_transaction_hash} was already relayed")

        proof = self.build_message_proof(receipt["blockNumber"], xdomain_calldata)
        l1_receipt = await self.l1_client.send_and_confirm(l1_messenger.functions.relayMessage(*relay_args, proof))
        return self.transaction_hash_of(l1_receipt)

    def build_message_proof(self, l2_block_number: int, xdomain_calldata: bytes) -> tuple[Any, ...]:
        """
        Assemble the L2MessageInclusionProof for a message sent in ``l2_block_number``.

        Raises:
            RelayNotReadyError: If the state root is not published or still
                inside the fraud proof window
        """
        scc = self.l1_client.contract(self.config["state_commitment_chain"], "StateCommitmentChain")

        # OVM block n carries state root number n - 1
        element_index = l2_block_number - 1
        if element_index >= scc.functions.getTotalElements().call():
            raise RelayNotReadyError(f"State root of L2 block {l2_block_number} is not published yet")

        batch_event = self.find_state_batch(scc, element_index)
        batch = batch_event["args"]
        batch_header = (
            batch["_batchIndex"],
            batch["_batchRoot"],
            batch["_batchSize"],
            batch["_prevTotalElements"],
            batch["_extraData"],
        )
        if scc.functions.insideFraudProofWindow(batch_header).call():
            raise RelayNotReadyError(f"State batch {batch['_batchIndex']} is inside the fraud proof window")

        state_roots = self.get_state_roots(scc, Web3.to_hex(batch_event["transactionHash"]))
        if BlockchainEncoder.get_merkle_root(state_roots) != bytes(batch["_batchRoot"]):
            raise ValueError(f"State roots of batch {batch['_batchIndex']} do not match the batch root")

        index_in_batch = element_index - batch["_prevTotalElements"]
        siblings = BlockchainEncoder.get_merkle_proof(state_roots, index_in_batch)

        slot = BlockchainEncoder.get_ovm_message_storage_slot(xdomain_calldata, L2_CROSS_DOMAIN_MESSENGER_ADDRESS)
        state_proof = self.l2_client.get_proof(
            OVM_L2_TO_L1_MESSAGE_PASSER_ADDRESS,
            [int.from_bytes(slot, "big")],
            l2_block_number,
        )

        return (
            state_roots[index_in_batch],
            batch_header,
            (index_in_batch, siblings),
            BlockchainEncoder.encode_proof_nodes(state_proof["accountProof"]),
            BlockchainEncoder.encode_proof_nodes(state_proof["storageProof"][0]["proof"]),
        )

    def find_state_batch(self, scc: Contract, element_index: int) -> EventData:
        """Binary search the StateBatchAppended event whose batch holds ``element_index``."""
        from_block = int(self.config.get("state_commitment_chain_start_block", 0))
        low, high = 0, scc.functions.getTotalBatches().call() - 1

        while low <= high:
            middle = (low + high) // 2
            events = scc.events.StateBatchAppended.get_logs(
                from_block=from_block,
                argument_filters={"_batchIndex": middle},
            )
            if not events:
                raise ValueError(f"StateBatchAppended event for batch {middle} not found")

            batch = events[0]["args"]
            start = batch["_prevTotalElements"]
            if element_index < start:
                high = middle - 1
            elif element_index >= start + batch["_batchSize"]:
                low = middle + 1
            else:
                return events[0]

        raise RelayNotReadyError(f"No state batch contains element {element_index} yet")

    def get_state_roots(self, scc: Contract, transaction_hash: str) -> list[bytes]:
        """State roots submitted by an appendStateBatch transaction."""
        transaction = self.l1_client.get_transaction(transaction_hash)
        _function, params = scc.decode_function_input(transaction["input"])
        return [bytes(root) for root in params["_batch"]]
