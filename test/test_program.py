#!/usr/bin/env python3
"""Tests for RelayerProgram."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from crosschain_bridge.config import ProgramOptions
from crosschain_bridge.errors import RelayNotReadyError, UnsupportedNetworkError
from crosschain_bridge.program import RelayerProgram, kill_on_parent_process_change
from crosschain_bridge.relayers import ArbitrumRelayerService, OptimismRelayerService
from factories import PRIVATE_KEY, TRANSACTION_HASH

L1_TX_HASH = "0x" + "cd" * 32


@pytest.fixture
def options():
    return ProgramOptions(
        l1_rpc_url="http://l1.test:8545",
        l2_relay_to_rpc_url="http://optimism.test:8545",
        l2_relay_from_rpc_url="http://arbitrum.test:8547",
        wallet_private_key=PRIVATE_KEY,
        l2_transaction_hash=TRANSACTION_HASH,
    )


def make_program():
    relayer_from = MagicMock()
    relayer_from.l2_transaction_hash = TRANSACTION_HASH
    relayer_from.run = AsyncMock(return_value=L1_TX_HASH)
    relayer_to = MagicMock()
    relayer_to.finalize = AsyncMock()
    return RelayerProgram(relayer_from, relayer_to)


class TestCreateFromArgs:
    @pytest.mark.asyncio
    async def test_creates_strategies_per_network(self, options):
        with patch("crosschain_bridge.program.get_network_id", new=AsyncMock(side_effect=[42161, 10])) as network_id:
            program = await RelayerProgram.create_from_args(options)

        assert [call.args[0] for call in network_id.await_args_list] == [
            "http://arbitrum.test:8547",
            "http://optimism.test:8545",
        ]
        assert isinstance(program.l2_relayer_from, ArbitrumRelayerService)
        assert isinstance(program.l2_relayer_to, OptimismRelayerService)
        assert program.l2_relayer_from.l2_client.rpc_url == "http://arbitrum.test:8547"
        assert program.l2_relayer_to.l2_client.rpc_url == "http://optimism.test:8545"

    @pytest.mark.asyncio
    async def test_loads_network_files(self, options, tmp_path):
        path = tmp_path / "network.json"
        path.write_text('{"outbox": "0x0b9857ae2d4a3dbe74ffe1d7df045bb7f96e4840"}')
        options.network_from = str(path)

        with patch("crosschain_bridge.program.get_network_id", new=AsyncMock(side_effect=[42161, 10])):
            program = await RelayerProgram.create_from_args(options)

        assert program.l2_relayer_from.network_config == {"outbox": "0x0b9857ae2d4a3dbe74ffe1d7df045bb7f96e4840"}
        assert program.l2_relayer_to.network_config == {}

    @pytest.mark.asyncio
    async def test_unsupported_network(self, options):
        with patch("crosschain_bridge.program.get_network_id", new=AsyncMock(side_effect=[42161, 999999])):
            with pytest.raises(UnsupportedNetworkError):
                await RelayerProgram.create_from_args(options)


class TestRun:
    @pytest.mark.asyncio
    async def test_finalizes_on_destination(self):
        program = make_program()

        await program.run()

        program.l2_relayer_to.finalize.assert_awaited_once_with(L1_TX_HASH)

    @pytest.mark.asyncio
    async def test_skips_finalization_without_l1_hash(self):
        program = make_program()
        program.l2_relayer_from.run.return_value = None

        await program.run()

        program.l2_relayer_to.finalize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_ready_propagates(self):
        program = make_program()
        program.l2_relayer_from.run.side_effect = RelayNotReadyError("challenge period")

        with pytest.raises(RelayNotReadyError):
            await program.run()

        program.l2_relayer_to.finalize.assert_not_awaited()


@pytest.mark.asyncio
async def test_kill_on_parent_process_change():
    with patch("crosschain_bridge.program.os.getppid", side_effect=[1, 1, 2]) as getppid:
        await kill_on_parent_process_change(1, interval=0)

    assert getppid.call_count == 3
