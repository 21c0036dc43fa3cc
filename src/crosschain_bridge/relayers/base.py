"""
Base class for rollup relay strategies.

A strategy knows how to move one L2 transaction's message to L1 for a
family of rollups (``relay_tx_to_l1``), and how to complete delivery on
its own chain once the L1 side has executed (``finalize``).
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, NamedTuple

from web3 import Web3
from web3.types import TxReceipt

from ..errors import RelayAlreadyExecutedError, RelayNotReadyError, TransactionRevertedError
from ..utils.chain_client import ChainClient

logger = logging.getLogger(__name__)


class RelayerArgs(NamedTuple):
    """Constructor arguments shared by every relay strategy."""

    l1_rpc_url: str
    l2_rpc_url: str
    private_key: str
    l2_transaction_hash: str
    network_config: dict[str, str] | None = None


class BaseRelayerService(ABC):
    """
    Relay strategy for one family of rollups.

    Construction never touches the network. Contract addresses are resolved
    on first use from ``DEFAULT_CONFIG`` for the L2 network id, overlaid with
    the custom ``network_config``.
    """

    DEFAULT_CONFIG: ClassVar[dict[int, dict[str, str]]] = {}
    REQUIRED_CONFIG: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        l1_rpc_url: str,
        l2_rpc_url: str,
        private_key: str,
        l2_transaction_hash: str,
        network_config: dict[str, str] | None = None,
    ):
        self.l1_client = ChainClient(l1_rpc_url, private_key)
        self.l2_client = ChainClient(l2_rpc_url, private_key)
        self.l2_transaction_hash = l2_transaction_hash
        self.network_config = dict(network_config or {})
        self._config: dict[str, str] | None = None

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def config(self) -> dict[str, str]:
        """
        Merged network configuration, resolved once.

        Raises:
            ValueError: If a key in ``REQUIRED_CONFIG`` has no value
        """
        if self._config is None:
            network_id = self.l2_client.chain_id
            config = {**self.DEFAULT_CONFIG.get(network_id, {}), **self.network_config}
            missing = [key for key in self.REQUIRED_CONFIG if not config.get(key)]
            if missing:
                raise ValueError(
                    f"{self.name} has no {', '.join(missing)} configured for network {network_id}. "
                    "Provide a custom network configuration file with --network-from/--network-to"
                )
            self._config = config
        return self._config

    def config_value(self, key: str) -> str:
        """Look up a single configuration value that is only needed by some operations."""
        if not (value := self.config.get(key)):
            raise ValueError(
                f"{self.name} has no {key} configured. "
                "Provide a custom network configuration file with --network-from/--network-to"
            )
        return value

    async def run(self) -> str | None:
        """
        Relay the L2 transaction's message to L1.

        Running twice is safe: a message that was already relayed is reported
        as success.

        Returns:
            Hash of the L1 transaction carrying the message, or None if the
            message was already relayed by someone else and the hash is unknown

        Raises:
            RelayNotReadyError: If the message cannot be relayed yet
        """
        logger.info(f"{self.name}: relaying {self.l2_transaction_hash} to L1")
        try:
            l1_transaction_hash = await self.relay_tx_to_l1()
        except RelayAlreadyExecutedError as e:
            logger.info(f"{self.name}: nothing to relay, {e}")
            return e.l1_transaction_hash

        logger.info(f"{self.name}: message relayed in L1 transaction {l1_transaction_hash}")
        return l1_transaction_hash

    async def finalize(self, l1_transaction_hash: str) -> None:
        """
        Complete delivery on this chain of a message carried by an L1 transaction.

        Raises:
            RelayNotReadyError: If the message has not arrived on this chain yet
        """
        try:
            await self.relay_l1_message(l1_transaction_hash)
        except RelayAlreadyExecutedError as e:
            logger.info(f"{self.name}: nothing to finalize, {e}")

    @abstractmethod
    async def relay_tx_to_l1(self) -> str:
        """Relay the message and return the hash of the L1 transaction."""

    async def relay_l1_message(self, l1_transaction_hash: str) -> None:
        logger.info(
            f"{self.name}: messages from L1 are delivered automatically, "
            f"nothing to do for {l1_transaction_hash}"
        )

    def get_l2_receipt(self) -> TxReceipt:
        """
        Receipt of the L2 transaction being relayed.

        Raises:
            RelayNotReadyError: If the transaction is not mined yet
            TransactionRevertedError: If the transaction failed
        """
        return self._get_successful_receipt(self.l2_client, self.l2_transaction_hash)

    def get_l1_receipt(self, l1_transaction_hash: str) -> TxReceipt:
        return self._get_successful_receipt(self.l1_client, l1_transaction_hash)

    @staticmethod
    def _get_successful_receipt(client: ChainClient, transaction_hash: str) -> TxReceipt:
        receipt = client.get_transaction_receipt(transaction_hash)
        if receipt is None:
            raise RelayNotReadyError(f"Transaction {transaction_hash} is not mined yet on {client.rpc_url}")
        if receipt.get("status", 0) != 1:
            raise TransactionRevertedError(transaction_hash)
        return receipt

    @staticmethod
    def transaction_hash_of(receipt: Any) -> str:
        return Web3.to_hex(receipt["transactionHash"])
