"""
Network id to relay strategy dispatch.
"""

from .errors import UnsupportedNetworkError
from .relayers import (
    ArbitrumRelayerService,
    BaseRelayerService,
    BobaRelayerService,
    EthereumRelayerService,
    OptimismRelayerService,
    PolygonZkEVMRelayerService,
    RelayerArgs,
)

SERVICES: dict[int, type[BaseRelayerService]] = {
    # Arbitrum One, Goerli, local Nitro devnet
    42161: ArbitrumRelayerService,
    421613: ArbitrumRelayerService,
    412346: ArbitrumRelayerService,
    # Boba Goerli, Boba mainnet
    2888: BobaRelayerService,
    288: BobaRelayerService,
    # Optimism mainnet, Goerli, local devnet
    10: OptimismRelayerService,
    420: OptimismRelayerService,
    17: OptimismRelayerService,
    # Ethereum mainnet, Goerli, local
    1: EthereumRelayerService,
    5: EthereumRelayerService,
    1337: EthereumRelayerService,
    # Polygon zkEVM mainnet, testnet, local
    1101: PolygonZkEVMRelayerService,
    1442: PolygonZkEVMRelayerService,
    1001: PolygonZkEVMRelayerService,
}


def create_relayer(network_id: int, args: RelayerArgs) -> BaseRelayerService:
    """
    Create the relay strategy registered for a network id.

    Raises:
        UnsupportedNetworkError: If no strategy is registered for the id
    """
    relayer_cls = SERVICES.get(network_id)
    if relayer_cls is None:
        raise UnsupportedNetworkError(network_id)
    return relayer_cls(*args)
