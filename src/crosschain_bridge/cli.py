"""
Command line entry point of the relayer.
"""

import argparse
import asyncio
import logging
import os
import sys

from .config import ProgramOptions, validate_args
from .program import RelayerProgram, kill_on_parent_process_change

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Relay an L2 transaction through L1 to another rollup")
    parser.add_argument("--l1-rpc-url", metavar="URL", help="RPC Provider URL for layer 1")
    parser.add_argument(
        "--l2-relay-to-rpc-url",
        metavar="URL",
        help="RPC Provider URL for relay destination rollup",
    )
    parser.add_argument(
        "--l2-relay-from-rpc-url",
        metavar="URL",
        help="RPC Provider URL for relay source rollup",
    )
    parser.add_argument(
        "--wallet-private-key",
        metavar="KEY",
        help="Private key for the layer 1 wallet (defaults to $WALLET_PRIVATE_KEY)",
    )
    parser.add_argument(
        "--l2-transaction-hash",
        metavar="HASH",
        help="Layer 2 transaction hash that needs to be relayed",
    )
    parser.add_argument("--network-from", metavar="FILE", help="Path to a file with custom network configuration")
    parser.add_argument("--network-to", metavar="FILE", help="Path to a file with custom network configuration")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level",
    )
    return parser


async def main(argv: list[str] | None = None) -> int:
    """
    Validate the options and run one relay.

    Returns:
        Process exit code, 0 on success and 1 on any failure
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    options = ProgramOptions.from_namespace(args)
    if errors := validate_args(options):
        print("\n".join(errors), file=sys.stderr)
        return 1

    options.log_config()
    start_ppid = os.getppid()

    try:
        program = await RelayerProgram.create_from_args(options)

        run_task = asyncio.create_task(program.run())
        watch_task = asyncio.create_task(kill_on_parent_process_change(start_ppid))
        done, pending = await asyncio.wait({run_task, watch_task}, return_when=asyncio.FIRST_COMPLETED)

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if run_task not in done:
            logger.error("Parent process changed, relay aborted")
            return 1

        run_task.result()
        return 0
    except Exception as e:
        logger.error(f"Relay failed: {e}", exc_info=True)
        return 1


def run() -> None:
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        exit_code = 1
    sys.exit(exit_code)
