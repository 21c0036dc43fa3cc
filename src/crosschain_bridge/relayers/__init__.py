"""
Relay strategies, one per rollup family.
"""

from .arbitrum import ArbitrumRelayerService
from .base import BaseRelayerService, RelayerArgs
from .boba import BobaRelayerService
from .ethereum import EthereumRelayerService
from .optimism import OptimismRelayerService
from .polygon_zkevm import PolygonZkEVMRelayerService

__all__ = [
    "ArbitrumRelayerService",
    "BaseRelayerService",
    "BobaRelayerService",
    "EthereumRelayerService",
    "OptimismRelayerService",
    "PolygonZkEVMRelayerService",
    "RelayerArgs",
]
