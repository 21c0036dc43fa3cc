import logging

from .base import BaseRelayerService

logger = logging.getLogger(__name__)


class EthereumRelayerService(BaseRelayerService):
    """
    Strategy for L1 itself.

    A transaction on Ethereum needs no relaying; the "L1 transaction" is the
    transaction being relayed.
    """

    async def relay_tx_to_l1(self) -> str:
        receipt = self.get_l2_receipt()
        logger.info(f"{self.l2_transaction_hash} is already an L1 transaction")
        return self.transaction_hash_of(receipt)
