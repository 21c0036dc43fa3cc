"""
Transfer state machine.

A transfer drives one cross-chain request end to end through a fixed,
ordered list of steps:

1. send the request transaction on the source chain
2. wait for the request event to learn the request identifier
3. wait for the fill on the target chain

Progress is kept in metadata fields rather than a phase counter, so a
transfer restored from ``encode()`` output resumes where it stopped.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from functools import partial
from typing import Any

from .errors import PreconditionError, StepExecutionError
from .models import (
    Chain,
    RequestFillMetadata,
    RequestMetadata,
    Step,
    Token,
    TokenAmount,
    UInt256,
)
from .transactions import fill_manager, request_manager
from .utils.chain_client import ChainClient
from .validators import (
    is_valid_eth_address,
    make_max_token_amount_validator,
    make_min_token_amount_validator,
    make_not_same_as_chain_validator,
)

logger = logging.getLogger(__name__)


class StepIdentifier(str, Enum):
    SEND_REQUEST_TRANSACTION = "send_request_transaction"
    WAIT_FOR_REQUEST_EVENT = "wait_for_request_event"
    WAIT_FOR_FULFILLMENT = "wait_for_fulfillment"


class TransferState(str, Enum):
    """Progress of a transfer, derived from which metadata is populated."""

    CREATED = "created"
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    FULFILLED = "fulfilled"


DEFAULT_STEPS: tuple[tuple[StepIdentifier, str], ...] = (
    (StepIdentifier.SEND_REQUEST_TRANSACTION, "Please confirm the transaction"),
    (StepIdentifier.WAIT_FOR_REQUEST_EVENT, "Waiting for transaction receipt"),
    (StepIdentifier.WAIT_FOR_FULFILLMENT, "Request is being fulfilled"),
)

StepExecutor = Callable[[], Awaitable[None]]


class Transfer:
    """A single cross-chain transfer and the steps that carry it out."""

    def __init__(
        self,
        amount: TokenAmount,
        source_chain: Chain,
        source_token: Token,
        target_chain: Chain,
        target_token: Token,
        target_account: str,
        validity_period: UInt256,
        fees: UInt256,
        steps: list[Step],
        request_metadata: RequestMetadata | None = None,
        request_fill_metadata: RequestFillMetadata | None = None,
    ):
        self.amount = amount
        self.source_chain = source_chain
        self.source_token = source_token
        self.target_chain = target_chain
        self.target_token = target_token
        self.target_account = target_account
        self.validity_period = validity_period
        self.fees = fees
        self.steps = steps
        self.request_metadata = request_metadata or RequestMetadata()
        self.request_fill_metadata = request_fill_metadata

        self._check_steps()
        self._check_metadata()

    def _check_metadata(self) -> None:
        if self.request_metadata.identifier is not None and not self.request_metadata.transaction_hash:
            raise ValueError("Request identifier is set without a request transaction hash")
        if self.request_fill_metadata is not None and self.request_metadata.identifier is None:
            raise ValueError("Fill metadata is set without a request identifier")

    def _check_steps(self) -> None:
        if not self.steps:
            raise ValueError("A transfer needs at least one step")

        for step in self.steps:
            try:
                identifier = StepIdentifier(step.identifier)
            except ValueError:
                raise ValueError(f"Unknown transfer step: {step.identifier}") from None
            if identifier not in STEP_EXECUTORS:
                raise ValueError(f"No executor defined for step: {step.identifier}")

    @classmethod
    def create(
        cls,
        amount: TokenAmount,
        source_chain: Chain,
        source_token: Token,
        target_chain: Chain,
        target_token: Token,
        target_account: str,
        validity_period: UInt256,
        fees: UInt256,
        min_amount: TokenAmount | None = None,
        max_amount: TokenAmount | None = None,
    ) -> "Transfer":
        """
        Create a new transfer from user supplied parameters.

        Raises:
            ValueError: If the parameters do not describe a valid transfer
        """
        if not make_not_same_as_chain_validator(source_chain)(target_chain):
            raise ValueError("Source and target chain must be different")
        if not is_valid_eth_address(target_account):
            raise ValueError(f"Invalid target account: {target_account}")
        if min_amount and not make_min_token_amount_validator(min_amount)(amount):
            raise ValueError(f"Amount must be at least {min_amount.format()}")
        if max_amount and not make_max_token_amount_validator(max_amount)(amount):
            raise ValueError(f"Amount must be at most {max_amount.format()}")

        return cls(
            amount=amount,
            source_chain=source_chain,
            source_token=source_token,
            target_chain=target_chain,
            target_token=target_token,
            target_account=target_account,
            validity_period=validity_period,
            fees=fees,
            steps=[Step(identifier=identifier.value, label=label) for identifier, label in DEFAULT_STEPS],
        )

    @property
    def state(self) -> TransferState:
        if self.request_fill_metadata is not None:
            return TransferState.FULFILLED
        if self.request_metadata.identifier is not None:
            return TransferState.CONFIRMED
        if self.request_metadata.transaction_hash:
            return TransferState.REQUESTED
        return TransferState.CREATED

    @property
    def done(self) -> bool:
        return all(step.completed for step in self.steps)

    @property
    def failed(self) -> bool:
        return any(step.failed for step in self.steps)

    def get_step_methods(self, signer: ChainClient, signer_address: str) -> dict[str, StepExecutor]:
        """Map every step identifier to a zero-argument executor."""
        return {
            step.identifier: partial(STEP_EXECUTORS[StepIdentifier(step.identifier)], self, signer, signer_address)
            for step in self.steps
        }

    def _is_step_satisfied(self, step: Step) -> bool:
        """Whether the step outcome is already recorded in the metadata."""
        match StepIdentifier(step.identifier):
            case StepIdentifier.SEND_REQUEST_TRANSACTION:
                return bool(self.request_metadata.transaction_hash)
            case StepIdentifier.WAIT_FOR_REQUEST_EVENT:
                return self.request_metadata.identifier is not None
            case StepIdentifier.WAIT_FOR_FULFILLMENT:
                return self.request_fill_metadata is not None

    async def execute(self, signer: ChainClient, signer_address: str) -> None:
        """
        Run all steps in order, skipping those whose outcome is already recorded.

        A step flagged ``completed`` without its metadata is run again.

        Args:
            signer: Client with a signing account on the source chain
            signer_address: Address of the signing account

        Raises:
            StepExecutionError: If a step fails; the step is flagged as failed
        """
        methods = self.get_step_methods(signer, signer_address)

        for step in self.steps:
            if self._is_step_satisfied(step):
                step.completed = True
                continue

            step.active = True
            step.completed = False
            step.failed = False
            step.error_message = None
            logger.info(f"Executing step {step.identifier}")

            try:
                await methods[step.identifier]()
            except Exception as e:
                step.failed = True
                step.error_message = str(e)
                logger.error(f"Step {step.identifier} failed: {e}")
                raise StepExecutionError(step.identifier, e) from e
            finally:
                step.active = False

            step.completed = True

    async def send_request_transaction(self, signer: ChainClient, signer_address: str) -> None:
        transaction_hash = await request_manager.send_request_transaction(
            signer,
            self.amount.uint256,
            self.target_chain.identifier,
            self.source_chain.request_manager_address,
            self.source_token.address,
            self.target_token.address,
            self.target_account,
            self.validity_period,
            self.fees,
        )

        self.request_metadata.request_account = signer_address
        self.request_metadata.transaction_hash = transaction_hash

    async def wait_for_request_event(self) -> None:
        if not self.request_metadata.transaction_hash:
            raise PreconditionError("Attempt to get request event before sending transaction!")

        client = ChainClient(self.source_chain.rpc_url)
        self.request_metadata.identifier = await request_manager.get_request_identifier(
            client,
            self.source_chain.request_manager_address,
            self.request_metadata.transaction_hash,
        )

    async def wait_for_fulfillment(self) -> None:
        if self.request_metadata.identifier is None:
            raise PreconditionError("Attempting to wait for fulfillment without request identifier!")

        client = ChainClient(self.target_chain.rpc_url)
        self.request_fill_metadata = await fill_manager.wait_for_fulfillment(
            client,
            self.request_metadata.identifier,
            self.target_chain.fill_manager_address,
        )

    def encode(self) -> dict[str, Any]:
        """Serialize the whole transfer into plain, JSON compatible data."""
        return {
            "amount": self.amount.to_dict(),
            "source_chain": self.source_chain.to_dict(),
            "source_token": self.source_token.to_dict(),
            "target_chain": self.target_chain.to_dict(),
            "target_token": self.target_token.to_dict(),
            "target_account": self.target_account,
            "validity_period": str(self.validity_period),
            "fees": str(self.fees),
            "request_metadata": self.request_metadata.to_dict(),
            "request_fill_metadata": (
                None if self.request_fill_metadata is None else self.request_fill_metadata.to_dict()
            ),
            "steps": [step.to_dict() for step in self.steps],
        }

    @classmethod
    def decode(cls, data: dict[str, Any]) -> "Transfer":
        """Restore a transfer from the output of ``encode()``."""
        request_metadata = data.get("request_metadata")
        request_fill_metadata = data.get("request_fill_metadata")
        return cls(
            amount=TokenAmount.from_dict(data["amount"]),
            source_chain=Chain.from_dict(data["source_chain"]),
            source_token=Token.from_dict(data["source_token"]),
            target_chain=Chain.from_dict(data["target_chain"]),
            target_token=Token.from_dict(data["target_token"]),
            target_account=data["target_account"],
            validity_period=UInt256(data["validity_period"]),
            fees=UInt256(data["fees"]),
            steps=[Step.from_dict(step) for step in data["steps"]],
            request_metadata=None if request_metadata is None else RequestMetadata.from_dict(request_metadata),
            request_fill_metadata=(
                None if request_fill_metadata is None else RequestFillMetadata.from_dict(request_fill_metadata)
            ),
        )


async def _send_request_transaction(transfer: Transfer, signer: ChainClient, signer_address: str) -> None:
    await transfer.send_request_transaction(signer, signer_address)


async def _wait_for_request_event(transfer: Transfer, signer: ChainClient, signer_address: str) -> None:
    await transfer.wait_for_request_event()


async def _wait_for_fulfillment(transfer: Transfer, signer: ChainClient, signer_address: str) -> None:
    await transfer.wait_for_fulfillment()


STEP_EXECUTORS: dict[StepIdentifier, Callable[[Transfer, ChainClient, str], Awaitable[None]]] = {
    StepIdentifier.SEND_REQUEST_TRANSACTION: _send_request_transaction,
    StepIdentifier.WAIT_FOR_REQUEST_EVENT: _wait_for_request_event,
    StepIdentifier.WAIT_FOR_FULFILLMENT: _wait_for_fulfillment,
}
