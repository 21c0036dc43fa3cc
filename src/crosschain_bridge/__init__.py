"""
Cross-chain bridge package.

Drives request/fill transfers between chains and relays rollup messages
through L1.
"""

from .dispatch import create_relayer
from .errors import (
    BridgeError,
    PreconditionError,
    RelayAlreadyExecutedError,
    RelayNotReadyError,
    StepExecutionError,
    TransactionRevertedError,
    UnsupportedNetworkError,
)
from .program import RelayerProgram
from .transfer import Transfer

__all__ = [
    "BridgeError",
    "PreconditionError",
    "RelayAlreadyExecutedError",
    "RelayNotReadyError",
    "RelayerProgram",
    "StepExecutionError",
    "Transfer",
    "TransactionRevertedError",
    "UnsupportedNetworkError",
    "create_relayer",
]
__version__ = "0.1.0"
