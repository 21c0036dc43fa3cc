import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import TransactionNotFound
from web3.logs import DISCARD
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import BlockData, EventData, TxReceipt

from ..errors import TransactionRevertedError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 12  # seconds
CONTRACTS_DIR = Path(__file__).parent.parent / "contracts"


def get_safe_gas_limit(estimated_gas: int) -> int:
    """Add a 10% margin on top of a gas estimate."""
    return estimated_gas + estimated_gas // 10


class ChainClient:
    """
    Thin client over the JSON-RPC endpoint of one chain.

    Can be used in two modes:
    1. Signing mode: Initialize with RPC URL and private key to submit transactions
    2. Read-only mode: Initialize with RPC URL only for queries and event logs
    """

    def __init__(self, rpc_url: str, secret: str = "", request_timeout: int = 30) -> None:
        """
        Initialize the ChainClient.

        Args:
            rpc_url: RPC URL for the network (required)
            secret: Private key for signing transactions (optional - if not provided, read-only mode)
            request_timeout: HTTP request timeout in seconds
        """
        if not rpc_url:
            raise ValueError("RPC URL is required")

        self.rpc_url = rpc_url
        self.account: LocalAccount | None = None
        self.w3 = Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": request_timeout}))

        if secret:
            self._add_signing_middleware(secret)

    def _add_signing_middleware(self, secret: str) -> None:
        """
        Add signing middleware to the Web3 instance.

        Args:
            secret: Private key for signing transactions
        """
        account: LocalAccount = Account.from_key(secret)
        self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        self.w3.eth.default_account = account.address
        self.account = account

    @property
    def address(self) -> str:
        """Address of the signing account."""
        if self.account is None:
            raise ValueError(f"No signing account configured for {self.rpc_url}")
        return self.account.address

    @property
    def chain_id(self) -> int:
        return int(self.w3.eth.chain_id)

    @property
    def block_number(self) -> int:
        return int(self.w3.eth.block_number)

    def get_balance(self, address: str) -> int:
        return int(self.w3.eth.get_balance(Web3.to_checksum_address(address)))

    def get_block(self, block_identifier: Any, full_transactions: bool = False) -> BlockData:
        return self.w3.eth.get_block(block_identifier, full_transactions=full_transactions)

    def get_raw_block(self, block_hash: str) -> dict[str, Any]:
        """
        Fetch a block by hash without response formatting.

        Rollup nodes add chain specific fields to blocks (e.g. ``sendCount`` on
        Arbitrum) which are returned here as raw hex values.
        """
        response = self.w3.provider.make_request("eth_getBlockByHash", [block_hash, False])
        if not response.get("result"):
            raise ValueError(f"Block {block_hash} not found on {self.rpc_url}")
        return response["result"]

    def get_transaction(self, transaction_hash: str) -> Any:
        return self.w3.eth.get_transaction(HexBytes(transaction_hash))

    def get_transaction_receipt(self, transaction_hash: str) -> TxReceipt | None:
        """
        Get a transaction receipt.

        Returns:
            The receipt, or None if the transaction is not mined yet
        """
        try:
            return self.w3.eth.get_transaction_receipt(HexBytes(transaction_hash))
        except TransactionNotFound:
            return None

    async def wait_for_receipt(
        self,
        transaction_hash: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TxReceipt:
        """
        Poll until the transaction is mined. There is no timeout; wrap the
        call in ``asyncio.wait_for`` to bound the wait.
        """
        while (receipt := self.get_transaction_receipt(transaction_hash)) is None:
            logger.debug(f"Waiting for receipt of {transaction_hash}")
            await asyncio.sleep(poll_interval)
        return receipt

    def get_proof(self, address: str, slots: list[int], block_identifier: Any) -> Any:
        return self.w3.eth.get_proof(Web3.to_checksum_address(address), slots, block_identifier)

    def get_contract_abi(self, contract_name: str) -> list[dict[str, Any]]:
        """Fetches ABI of the given contract from the contracts folder.

        Args:
            contract_name: Name of the contract (without .json extension)

        Returns:
            List of ABI dictionaries for the contract

        Raises:
            FileNotFoundError: If the contract file doesn't exist
            json.JSONDecodeError: If the contract file is invalid JSON
        """
        contract_path: Path = (CONTRACTS_DIR / f"{contract_name}.json").resolve()

        with contract_path.open() as file:
            contract_data: dict[str, Any] = json.load(file)

        return contract_data["abi"]

    def contract(self, address: str, contract_name: str) -> Contract:
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self.get_contract_abi(contract_name),
        )

    @staticmethod
    def decode_events(contract: Contract, event_name: str, receipt: TxReceipt) -> list[EventData]:
        """Decode all logs of ``event_name`` emitted by ``contract`` in a receipt."""
        event = getattr(contract.events, event_name)()
        return [
            log
            for log in event.process_receipt(receipt, errors=DISCARD)
            if log["address"] == contract.address
        ]

    def send_transaction(self, contract_function: Any, value: int = 0) -> str:
        """
        Estimate gas and submit a contract call as a signed transaction.

        Returns:
            Transaction hash as hex string
        """
        tx_params: dict[str, Any] = {"from": self.address, "value": value}
        estimated_gas = contract_function.estimate_gas(tx_params)
        tx_params["gas"] = get_safe_gas_limit(estimated_gas)

        tx_hash = contract_function.transact(tx_params)
        logger.info(f"Transaction submitted to {self.rpc_url}: {Web3.to_hex(tx_hash)}")
        return Web3.to_hex(tx_hash)

    async def send_and_confirm(
        self,
        contract_function: Any,
        value: int = 0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TxReceipt:
        """Submit a transaction and wait until it is mined successfully."""
        tx_hash = self.send_transaction(contract_function, value=value)
        receipt = await self.wait_for_receipt(tx_hash, poll_interval=poll_interval)

        if (status := receipt.get("status", 0)) != 1:
            logger.error(f"Transaction {tx_hash} failed with status={status}")
            raise TransactionRevertedError(tx_hash)

        logger.info(f"Transaction {tx_hash} confirmed in block {receipt['blockNumber']}")
        return receipt


async def get_network_id(rpc_url: str) -> int:
    """Resolve the network id served by an RPC endpoint."""
    return ChainClient(rpc_url).chain_id
