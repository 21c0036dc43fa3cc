#!/usr/bin/env python3
"""Tests for the Transfer state machine."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from crosschain_bridge.errors import PreconditionError, StepExecutionError
from crosschain_bridge.models import RequestFillMetadata, RequestMetadata, Step, TokenAmount, UInt256
from crosschain_bridge.transfer import StepIdentifier, Transfer, TransferState
from factories import (
    FILL_MANAGER_ADDRESS,
    REQUEST_MANAGER_ADDRESS,
    SIGNER_ADDRESS,
    SOURCE_TOKEN_ADDRESS,
    TARGET_ACCOUNT,
    TARGET_TOKEN_ADDRESS,
    make_chain,
    make_token,
    make_transfer,
)

SEND_PATH = "crosschain_bridge.transactions.request_manager.send_request_transaction"
IDENTIFIER_PATH = "crosschain_bridge.transactions.request_manager.get_request_identifier"
FULFILLMENT_PATH = "crosschain_bridge.transactions.fill_manager.wait_for_fulfillment"
CLIENT_PATH = "crosschain_bridge.transfer.ChainClient"

FILL = RequestFillMetadata(fill_transaction_hash="0xFillHash", filler="0xFiller")


@pytest.fixture
def signer():
    """Create a mock signing chain client."""
    return MagicMock()


class TestTransferConstruction:
    """Tests for structural checks at construction."""

    def test_rejects_empty_steps(self):
        """A transfer without steps is invalid."""
        with pytest.raises(ValueError, match="at least one step"):
            make_transfer(steps=[])

    def test_rejects_unknown_step(self):
        """Every step identifier must map to an executor."""
        with pytest.raises(ValueError, match="Unknown transfer step"):
            make_transfer(steps=[Step(identifier="approve_token", label="Approve")])

    def test_rejects_identifier_without_transaction_hash(self):
        """The request identifier cannot exist before the request transaction."""
        with pytest.raises(ValueError, match="without a request transaction hash"):
            make_transfer(request_metadata=RequestMetadata(identifier=UInt256(1)))

    def test_rejects_fill_without_identifier(self):
        """Fill metadata requires a known request identifier."""
        with pytest.raises(ValueError, match="without a request identifier"):
            make_transfer(request_fill_metadata=FILL)

    def test_initial_state(self):
        """A new transfer starts with empty metadata."""
        transfer = make_transfer()

        assert transfer.state == TransferState.CREATED
        assert transfer.request_metadata == RequestMetadata()
        assert transfer.request_fill_metadata is None
        assert not transfer.done
        assert not transfer.failed


class TestTransferCreate:
    """Tests for the validated factory."""

    def _create(self, **overrides):
        token = make_token()
        values = {
            "amount": TokenAmount.parse("1.5", token),
            "source_chain": make_chain(1),
            "source_token": token,
            "target_chain": make_chain(2),
            "target_token": make_token(TARGET_TOKEN_ADDRESS),
            "target_account": TARGET_ACCOUNT,
            "validity_period": UInt256(3600),
            "fees": UInt256(100),
        }
        values.update(overrides)
        return Transfer.create(**values)

    def test_default_steps(self):
        """The factory sets up the three protocol steps in order."""
        transfer = self._create()

        assert [step.identifier for step in transfer.steps] == [
            "send_request_transaction",
            "wait_for_request_event",
            "wait_for_fulfillment",
        ]
        assert transfer.amount.uint256 == UInt256(1_500_000_000_000_000_000)

    def test_same_chain_rejected(self):
        with pytest.raises(ValueError, match="must be different"):
            self._create(target_chain=make_chain(1))

    def test_invalid_target_account_rejected(self):
        with pytest.raises(ValueError, match="Invalid target account"):
            self._create(target_account="not-an-address")

    def test_amount_bounds(self):
        """Amounts outside the optional bounds are rejected."""
        token = make_token()
        with pytest.raises(ValueError, match="at least 2"):
            self._create(min_amount=TokenAmount.parse("2", token))
        with pytest.raises(ValueError, match="at most 1"):
            self._create(max_amount=TokenAmount.parse("1", token))


class TestGetStepMethods:
    """Tests for the step executor mapping."""

    def test_every_step_has_an_executor(self, signer):
        transfer = make_transfer()

        methods = transfer.get_step_methods(signer, SIGNER_ADDRESS)

        assert set(methods) == {step.identifier for step in transfer.steps}
        assert all(callable(method) for method in methods.values())

    @pytest.mark.asyncio
    async def test_executor_runs_matching_step(self, signer):
        """The executor for the send step calls send_request_transaction."""
        transfer = make_transfer()

        with patch.object(Transfer, "send_request_transaction", new=AsyncMock()) as send:
            await transfer.get_step_methods(signer, SIGNER_ADDRESS)["send_request_transaction"]()

        send.assert_awaited_once_with(signer, SIGNER_ADDRESS)


class TestSendRequestTransaction:
    """Tests for the request submission step."""

    @pytest.mark.asyncio
    async def test_invokes_gateway_and_records_metadata(self, signer):
        """Amount 1, chains 1 -> 2, validity 3 and fees 4 reach the gateway unchanged."""
        transfer = make_transfer(amount="1", validity_period="3", fees="4")

        with patch(SEND_PATH, new=AsyncMock(return_value="0xHash")) as send:
            await transfer.send_request_transaction(signer, SIGNER_ADDRESS)

        send.assert_awaited_once_with(
            signer,
            UInt256(1),
            2,
            REQUEST_MANAGER_ADDRESS,
            SOURCE_TOKEN_ADDRESS,
            TARGET_TOKEN_ADDRESS,
            TARGET_ACCOUNT,
            UInt256(3),
            UInt256(4),
        )
        assert transfer.request_metadata.transaction_hash == "0xHash"
        assert transfer.request_metadata.request_account == SIGNER_ADDRESS
        assert transfer.state == TransferState.REQUESTED


class TestWaitForRequestEvent:
    """Tests for the request identifier step."""

    @pytest.mark.asyncio
    async def test_requires_transaction_hash(self):
        transfer = make_transfer()

        with pytest.raises(PreconditionError, match="before sending transaction"):
            await transfer.wait_for_request_event()

    @pytest.mark.asyncio
    async def test_empty_transaction_hash_counts_as_unset(self):
        transfer = make_transfer(request_metadata=RequestMetadata(transaction_hash=""))

        with pytest.raises(PreconditionError, match="before sending transaction"):
            await transfer.wait_for_request_event()

    @pytest.mark.asyncio
    async def test_records_identifier(self):
        """The identifier is read from the source chain with the request hash."""
        transfer = make_transfer(request_metadata=RequestMetadata(transaction_hash="0xHash"))

        with patch(CLIENT_PATH) as client_cls, patch(
            IDENTIFIER_PATH, new=AsyncMock(return_value=UInt256(7))
        ) as get_identifier:
            await transfer.wait_for_request_event()

        client_cls.assert_called_once_with(transfer.source_chain.rpc_url)
        get_identifier.assert_awaited_once_with(client_cls.return_value, REQUEST_MANAGER_ADDRESS, "0xHash")
        assert transfer.request_metadata.identifier == UInt256(7)
        assert transfer.state == TransferState.CONFIRMED


class TestWaitForFulfillment:
    """Tests for the fulfillment step."""

    @pytest.mark.asyncio
    async def test_requires_identifier(self):
        transfer = make_transfer(request_metadata=RequestMetadata(transaction_hash="0xHash"))

        with pytest.raises(PreconditionError, match="without request identifier"):
            await transfer.wait_for_fulfillment()

    @pytest.mark.asyncio
    async def test_invokes_gateway_with_identifier_and_fill_manager(self):
        """Identifier 1 and the target fill manager address reach the gateway."""
        transfer = make_transfer(
            target_chain=make_chain(2, fill_manager_address="0xFillManager"),
            request_metadata=RequestMetadata(transaction_hash="0xHash", identifier=UInt256("1")),
        )

        with patch(CLIENT_PATH) as client_cls, patch(FULFILLMENT_PATH, new=AsyncMock(return_value=FILL)) as wait:
            await transfer.wait_for_fulfillment()

        client_cls.assert_called_once_with(transfer.target_chain.rpc_url)
        wait.assert_awaited_once_with(client_cls.return_value, UInt256(1), "0xFillManager")
        assert transfer.request_fill_metadata == FILL
        assert transfer.state == TransferState.FULFILLED


class TestExecute:
    """Tests for running all steps."""

    @pytest.mark.asyncio
    async def test_runs_steps_in_order(self, signer):
        calls = []

        async def send(*args):
            calls.append("send")
            return "0xHash"

        async def identifier(*args):
            calls.append("identifier")
            return UInt256(1)

        async def fulfillment(*args):
            calls.append("fulfillment")
            return FILL

        transfer = make_transfer()
        with patch(CLIENT_PATH), patch(SEND_PATH, new=send), patch(IDENTIFIER_PATH, new=identifier), patch(
            FULFILLMENT_PATH, new=fulfillment
        ):
            await transfer.execute(signer, SIGNER_ADDRESS)

        assert calls == ["send", "identifier", "fulfillment"]
        assert transfer.done
        assert not any(step.active for step in transfer.steps)
        assert transfer.state == TransferState.FULFILLED

    @pytest.mark.asyncio
    async def test_resumes_after_recorded_progress(self, signer):
        """Steps whose outcome is in the metadata are not executed again."""
        transfer = make_transfer(
            request_metadata=RequestMetadata(
                request_account=SIGNER_ADDRESS, transaction_hash="0xHash", identifier=UInt256(1)
            )
        )

        send = AsyncMock()
        get_identifier = AsyncMock()
        with patch(CLIENT_PATH), patch(SEND_PATH, new=send), patch(IDENTIFIER_PATH, new=get_identifier), patch(
            FULFILLMENT_PATH, new=AsyncMock(return_value=FILL)
        ) as wait:
            await transfer.execute(signer, SIGNER_ADDRESS)

        send.assert_not_awaited()
        get_identifier.assert_not_awaited()
        wait.assert_awaited_once()
        assert transfer.done

    @pytest.mark.asyncio
    async def test_completed_flag_without_metadata_reruns_step(self, signer):
        """A persisted completed flag does not skip a step whose outcome is missing."""
        transfer = make_transfer()
        transfer.steps[0].completed = True
        restored = Transfer.decode(transfer.encode())

        send = AsyncMock(return_value="0xHash")
        with patch(CLIENT_PATH), patch(SEND_PATH, new=send), patch(
            IDENTIFIER_PATH, new=AsyncMock(return_value=UInt256(1))
        ), patch(FULFILLMENT_PATH, new=AsyncMock(return_value=FILL)):
            await restored.execute(signer, SIGNER_ADDRESS)

        send.assert_awaited_once()
        assert restored.request_metadata.transaction_hash == "0xHash"
        assert restored.done

    @pytest.mark.asyncio
    async def test_failure_marks_step_and_wraps_error(self, signer):
        transfer = make_transfer()

        with patch(CLIENT_PATH), patch(SEND_PATH, new=AsyncMock(return_value="0xHash")), patch(
            IDENTIFIER_PATH, new=AsyncMock(side_effect=ValueError("Request Failed. Couldn't retrieve Request ID"))
        ), patch(FULFILLMENT_PATH, new=AsyncMock(return_value=FILL)) as wait:
            with pytest.raises(StepExecutionError) as exc_info:
                await transfer.execute(signer, SIGNER_ADDRESS)

        assert exc_info.value.step_identifier == StepIdentifier.WAIT_FOR_REQUEST_EVENT.value
        assert isinstance(exc_info.value.cause, ValueError)
        wait.assert_not_awaited()

        send_step, event_step, fill_step = transfer.steps
        assert send_step.completed
        assert event_step.failed and not event_step.completed and not event_step.active
        assert "Request ID" in event_step.error_message
        assert not fill_step.completed
        assert transfer.failed

    @pytest.mark.asyncio
    async def test_retry_after_failure_resumes(self, signer):
        """Re-running execute continues from the failed step."""
        transfer = make_transfer()

        send = AsyncMock(return_value="0xHash")
        with patch(CLIENT_PATH), patch(SEND_PATH, new=send), patch(
            IDENTIFIER_PATH, new=AsyncMock(side_effect=ConnectionError("rpc down"))
        ):
            with pytest.raises(StepExecutionError):
                await transfer.execute(signer, SIGNER_ADDRESS)

        with patch(CLIENT_PATH), patch(SEND_PATH, new=send), patch(
            IDENTIFIER_PATH, new=AsyncMock(return_value=UInt256(1))
        ), patch(FULFILLMENT_PATH, new=AsyncMock(return_value=FILL)):
            await transfer.execute(signer, SIGNER_ADDRESS)

        assert send.await_count == 1
        assert transfer.done
        assert not transfer.failed


class TestEncodeDecode:
    """Tests for persistence."""

    def test_round_trip(self):
        transfer = make_transfer(amount=str(2**256 - 1))

        encoded = transfer.encode()

        assert Transfer.decode(encoded).encode() == encoded
        assert encoded["amount"]["amount"] == str(2**256 - 1)

    def test_round_trip_through_json_with_progress(self):
        """A transfer with all metadata survives JSON persistence."""
        transfer = make_transfer(
            request_metadata=RequestMetadata(
                request_account=SIGNER_ADDRESS, transaction_hash="0xHash", identifier=UInt256(12)
            ),
            request_fill_metadata=FILL,
        )
        transfer.steps[0].completed = True

        encoded = json.loads(json.dumps(transfer.encode()))
        restored = Transfer.decode(encoded)

        assert restored.encode() == transfer.encode()
        assert restored.state == TransferState.FULFILLED
        assert restored.request_metadata.identifier == UInt256(12)
        assert restored.steps[0].completed

    def test_decoded_transfer_validates_metadata(self):
        encoded = make_transfer().encode()
        encoded["request_metadata"]["identifier"] = "5"

        with pytest.raises(ValueError):
            Transfer.decode(encoded)

    def test_fill_manager_address_persisted(self):
        encoded = make_transfer().encode()

        assert encoded["target_chain"]["fill_manager_address"] == FILL_MANAGER_ADDRESS
