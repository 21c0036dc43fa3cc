"""
Error types for the cross-chain bridge.

Transfer steps and relay strategies raise these so that callers can tell
configuration mistakes (never retried) from transient conditions (retry later).
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class PreconditionError(BridgeError):
    """A transfer step ran before the metadata it depends on was populated."""


class StepExecutionError(BridgeError):
    """A transfer step failed. Wraps the original exception."""

    def __init__(self, step_identifier: str, cause: BaseException):
        self.step_identifier = step_identifier
        self.cause = cause
        super().__init__(f"Step '{step_identifier}' failed: {cause}")


class UnsupportedNetworkError(BridgeError):
    """No relay strategy is registered for the network id."""

    def __init__(self, network_id: int):
        self.network_id = network_id
        super().__init__(f"No relayer program found for {network_id}!")


class RelayNotReadyError(BridgeError):
    """The source transaction is not finalized enough to be relayed yet.

    Attributes:
        retry_after: Suggested delay in seconds before retrying, if known
    """

    def __init__(self, message: str, retry_after: int | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class RelayAlreadyExecutedError(BridgeError):
    """The message was relayed before. Strategies turn this into success."""

    def __init__(self, message: str, l1_transaction_hash: str | None = None):
        self.l1_transaction_hash = l1_transaction_hash
        super().__init__(message)


class TransactionRevertedError(BridgeError):
    """A submitted transaction was mined with a failure status."""

    def __init__(self, transaction_hash: str):
        self.transaction_hash = transaction_hash
        super().__init__(f"Transaction {transaction_hash} reverted")
