"""
Optimism Bedrock relay strategy.

Withdrawals go through two L1 transactions on the OptimismPortal: a proof
against an L2 output root, and after the finalization period the
finalization itself. Each ``run()`` advances the withdrawal as far as it
can and reports the remaining wait through ``RelayNotReadyError``.
"""

import logging
from typing import Any

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from ..errors import RelayAlreadyExecutedError, RelayNotReadyError
from ..utils.blockchain_encoder import BlockchainEncoder
from .base import BaseRelayerService

logger = logging.getLogger(__name__)

L2_TO_L1_MESSAGE_PASSER_ADDRESS = "0x4200000000000000000000000000000000000016"
L2_CROSS_DOMAIN_MESSENGER_ADDRESS = "0x4200000000000000000000000000000000000007"
OUTPUT_ROOT_VERSION = b"\x00" * 32


class OptimismRelayerService(BaseRelayerService):
    DEFAULT_CONFIG = {
        10: {
            "optimism_portal": "0xbEb5Fc579115071764c7423A4f12eDde41f106Ed",
            "l2_output_oracle": "0xdfe97868233d1aa22e815a266982f2cf17685a27",
            "l1_cross_domain_messenger": "0x25ace71c97B33Cc4729CF772ae268934F7ab5fA1",
        },
        420: {
            "optimism_portal": "0x5b47E1A08Ea6d985D6649300584e6722Ec4B1383",
            "l2_output_oracle": "0xE6Dfba0953616Bacab0c9A8ecb3a9BBa77FC15c0",
            "l1_cross_domain_messenger": "0x5086d1eEF304eb5284A0f6720f79403b4e9bE294",
        },
    }
    REQUIRED_CONFIG = ("optimism_portal", "l2_output_oracle")

    async def relay_tx_to_l1(self) -> str:
        receipt = self.get_l2_receipt()

        message_passer = self.l2_client.contract(L2_TO_L1_MESSAGE_PASSER_ADDRESS, "L2ToL1MessagePasser")
        withdrawals = self.l2_client.decode_events(message_passer, "MessagePassed", receipt)
        if not withdrawals:
            raise ValueError(f"No MessagePassed event found in {self.l2_transaction_hash}")

        args = withdrawals[0]["args"]
        withdrawal = (args["nonce"], args["sender"], args["target"], args["value"], args["gasLimit"], args["data"])
        withdrawal_hash = args["withdrawalHash"]

        portal = self.l1_client.contract(self.config["optimism_portal"], "OptimismPortal")
        oracle = self.l1_client.contract(self.config["l2_output_oracle"], "L2OutputOracle")

        if portal.functions.finalizedWithdrawals(withdrawal_hash).call():
            raise RelayAlreadyExecutedError(f"withdrawal {Web3.to_hex(withdrawal_hash)} was already finalized")

        finalization_period = oracle.functions.FINALIZATION_PERIOD_SECONDS().call()
        _output_root, proven_at, _output_index = portal.functions.provenWithdrawals(withdrawal_hash).call()

        if proven_at == 0:
            await self.prove_withdrawal(portal, oracle, withdrawal, withdrawal_hash, receipt["blockNumber"])
            raise RelayNotReadyError(
                f"Withdrawal {Web3.to_hex(withdrawal_hash)} proven, "
                f"finalization possible in {finalization_period}s",
                retry_after=finalization_period,
            )

        now = self.l1_client.get_block("latest")["timestamp"]
        finalizable_at = proven_at + finalization_period
        if now < finalizable_at:
            raise RelayNotReadyError(
                f"Withdrawal {Web3.to_hex(withdrawal_hash)} is in its challenge period "
                f"for another {finalizable_at - now}s",
                retry_after=finalizable_at - now,
            )

        l1_receipt = await self.l1_client.send_and_confirm(
            portal.functions.finalizeWithdrawalTransaction(withdrawal)
        )
        return self.transaction_hash_of(l1_receipt)

    async def prove_withdrawal(
        self,
        portal: Contract,
        oracle: Contract,
        withdrawal: tuple[Any, ...],
        withdrawal_hash: bytes,
        l2_block_number: int,
    ) -> None:
        """
        Prove a withdrawal against the first output root covering its block.

        Raises:
            RelayNotReadyError: If no output root covers the block yet
            ValueError: If the node returned an inconsistent proof
        """
        latest_proposed = oracle.functions.latestBlockNumber().call()
        if l2_block_number > latest_proposed:
            raise RelayNotReadyError(
                f"L2 block {l2_block_number} has no output root yet "
                f"(latest proposed block: {latest_proposed})"
            )

        output_index = oracle.functions.getL2OutputIndexAfter(l2_block_number).call()
        output_root, _timestamp, output_block_number = oracle.functions.getL2Output(output_index).call()

        slot = BlockchainEncoder.get_withdrawal_storage_slot(withdrawal_hash)
        proof = self.l2_client.get_proof(
            L2_TO_L1_MESSAGE_PASSER_ADDRESS,
            [int.from_bytes(slot, "big")],
            output_block_number,
        )
        storage_proof = [bytes(node) for node in proof["storageProof"][0]["proof"]]
        BlockchainEncoder.verify_storage_proof(proof["storageHash"], slot, storage_proof)

        block = self.l2_client.get_block(output_block_number)
        output_root_proof = (
            OUTPUT_ROOT_VERSION,
            bytes(block["stateRoot"]),
            bytes(proof["storageHash"]),
            bytes(block["hash"]),
        )
        if BlockchainEncoder.compute_output_root(*output_root_proof) != bytes(output_root):
            raise ValueError(f"Output root mismatch for L2 block {output_block_number}")

        logger.info(f"Proving withdrawal {Web3.to_hex(withdrawal_hash)} against output {output_index}")
        await self.l1_client.send_and_confirm(
            portal.functions.proveWithdrawalTransaction(withdrawal, output_index, output_root_proof, storage_proof)
        )

    async def relay_l1_message(self, l1_transaction_hash: str) -> None:
        """
        Make sure L1 to L2 messages sent by an L1 transaction were executed.

        Deposits are relayed by the sequencer. A message whose execution failed
        on L2 is replayed.
        """
        receipt = self.get_l1_receipt(l1_transaction_hash)

        l1_messenger = self.l1_client.contract(self.config_value("l1_cross_domain_messenger"), "CrossDomainMessenger")
        messages = self.l1_client.decode_events(l1_messenger, "SentMessage", receipt)
        extensions = self.l1_client.decode_events(l1_messenger, "SentMessageExtension1", receipt)
        if not messages:
            raise ValueError(f"No SentMessage event found in {l1_transaction_hash}")

        l2_messenger = self.l2_client.contract(L2_CROSS_DOMAIN_MESSENGER_ADDRESS, "CrossDomainMessenger")
        for message, extension in zip(messages, extensions, strict=True):
            args = message["args"]
            relay_args = [
                args["messageNonce"],
                args["sender"],
                args["target"],
                extension["args"]["value"],
                args["gasLimit"],
                args["message"],
            ]
            message_hash = Web3.keccak(HexBytes(l2_messenger.encode_abi("relayMessage", args=relay_args)))

            if l2_messenger.functions.successfulMessages(message_hash).call():
                logger.info(f"Message {Web3.to_hex(message_hash)} was relayed on L2")
            elif l2_messenger.functions.failedMessages(message_hash).call():
                logger.info(f"Message {Web3.to_hex(message_hash)} failed on L2, replaying")
                await self.l2_client.send_and_confirm(l2_messenger.functions.relayMessage(*relay_args))
            else:
                raise RelayNotReadyError(f"Message {Web3.to_hex(message_hash)} has not been relayed on L2 yet")
