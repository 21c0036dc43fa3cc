"""
Request manager operations on the source chain.
"""

import logging

from web3 import Web3

from ..errors import TransactionRevertedError
from ..models import UInt256
from ..utils.chain_client import DEFAULT_POLL_INTERVAL, ChainClient

logger = logging.getLogger(__name__)


async def send_request_transaction(
    signer: ChainClient,
    amount: UInt256,
    target_chain_identifier: int,
    request_manager_address: str,
    source_token_address: str,
    target_token_address: str,
    target_account: str,
    validity_period: UInt256,
    fees: UInt256,
) -> str:
    """
    Submit a transfer request to the request manager contract.

    The fees are paid as transaction value.

    Returns:
        Hash of the request transaction
    """
    contract = signer.contract(request_manager_address, "RequestManager")
    create_request = contract.functions.createRequest(
        target_chain_identifier,
        Web3.to_checksum_address(source_token_address),
        Web3.to_checksum_address(target_token_address),
        Web3.to_checksum_address(target_account),
        int(amount),
        int(validity_period),
    )

    logger.info(
        f"Sending request of {amount} to chain {target_chain_identifier} "
        f"via {request_manager_address}"
    )
    return signer.send_transaction(create_request, value=int(fees))


async def get_request_identifier(
    client: ChainClient,
    request_manager_address: str,
    transaction_hash: str,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> UInt256:
    """
    Wait for the request transaction and read the identifier assigned to it.

    Raises:
        TransactionRevertedError: If the request transaction failed
        ValueError: If the receipt holds no RequestCreated event
    """
    contract = client.contract(request_manager_address, "RequestManager")
    receipt = await client.wait_for_receipt(transaction_hash, poll_interval=poll_interval)

    if receipt.get("status", 0) != 1:
        raise TransactionRevertedError(transaction_hash)

    events = client.decode_events(contract, "RequestCreated", receipt)
    if not events:
        raise ValueError("Request Failed. Couldn't retrieve Request ID")

    identifier = UInt256(events[0]["args"]["requestId"])
    logger.info(f"Request {transaction_hash} got identifier {identifier}")
    return identifier
