"""
Fill manager operations on the target chain.
"""

import logging

from web3 import Web3

from ..models import RequestFillMetadata, UInt256
from ..utils.chain_client import DEFAULT_POLL_INTERVAL, ChainClient
from ..utils.polling_event_listener import DEFAULT_LOOKBACK_BLOCKS, PollingEventListener

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


async def wait_for_fulfillment(
    client: ChainClient,
    request_identifier: UInt256,
    fill_manager_address: str,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS,
) -> RequestFillMetadata:
    """
    Block until the fill manager reports a fill for the request.

    A request the fill manager already records as filled is looked up in the
    full event history, however long ago the fill happened.

    Returns:
        Fill transaction hash and filler address of the RequestFilled event

    Raises:
        ValueError: If the request is recorded as filled but no RequestFilled event exists
    """
    contract = client.contract(fill_manager_address, "FillManager")
    listener = PollingEventListener(
        client=client,
        contract=contract,
        event_name="RequestFilled",
        argument_filters={"requestId": int(request_identifier)},
        lookback_blocks=lookback_blocks,
    )

    if (filler := contract.functions.fills(int(request_identifier)).call()) != ZERO_ADDRESS:
        logger.info(f"Request {request_identifier} was already filled by {filler}, searching event history")
        if (event := listener.search_history()) is None:
            raise ValueError(f"No RequestFilled event found for filled request {request_identifier}")
    else:
        event = await listener.wait_for_event(interval=poll_interval)

    fill_metadata = RequestFillMetadata(
        fill_transaction_hash=Web3.to_hex(event["transactionHash"]),
        filler=event["args"]["filler"],
    )
    logger.info(
        f"Request {request_identifier} filled by {fill_metadata.filler} "
        f"in {fill_metadata.fill_transaction_hash}"
    )
    return fill_metadata
