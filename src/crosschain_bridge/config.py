"""
Configuration module for the relayer program.

This module provides the options dataclass mirroring the command line,
their validation, and loading of custom network configuration files.
"""

import json
import logging
import os
import re
from argparse import Namespace
from dataclasses import dataclass, fields
from pathlib import Path
from urllib.parse import urlparse

from web3 import Web3

logger = logging.getLogger(__name__)

RPC_URL_SCHEMES = ("http", "https")
_PRIVATE_KEY = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
_TRANSACTION_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")

# Configuration keys that hold contract addresses
ADDRESS_KEYS = frozenset(
    {
        "rollup",
        "outbox",
        "optimism_portal",
        "l2_output_oracle",
        "l1_cross_domain_messenger",
        "state_commitment_chain",
        "l1_bridge",
        "l2_bridge",
    }
)


@dataclass
class ProgramOptions:
    """Options of a single relay invocation."""

    l1_rpc_url: str | None = None
    l2_relay_to_rpc_url: str | None = None
    l2_relay_from_rpc_url: str | None = None
    wallet_private_key: str | None = None
    l2_transaction_hash: str | None = None
    network_from: str | None = None
    network_to: str | None = None

    @classmethod
    def from_namespace(cls, namespace: Namespace) -> "ProgramOptions":
        """
        Build options from parsed arguments.

        The private key falls back to the WALLET_PRIVATE_KEY environment variable.
        """
        values = {f.name: getattr(namespace, f.name, None) for f in fields(cls)}
        if not values["wallet_private_key"]:
            values["wallet_private_key"] = os.environ.get("WALLET_PRIVATE_KEY")
        return cls(**values)

    def log_config(self) -> None:
        """Log configuration settings (hiding sensitive data)."""
        logger.info("=== Relayer Configuration ===")
        logger.info(f"  L1 RPC URL: {self.l1_rpc_url}")
        logger.info(f"  Relay from RPC URL: {self.l2_relay_from_rpc_url}")
        logger.info(f"  Relay to RPC URL: {self.l2_relay_to_rpc_url}")
        logger.info(f"  Transaction: {self.l2_transaction_hash}")
        logger.info(f"  Wallet Private Key: {'[SET]' if self.wallet_private_key else '[NOT SET]'}")
        logger.info(f"  Network from: {self.network_from or '[DEFAULT]'}")
        logger.info(f"  Network to: {self.network_to or '[DEFAULT]'}")


def validate_args(args: ProgramOptions) -> list[str]:
    """
    Check that all required options are present and well formed.

    Returns:
        Human readable error messages, empty if the options are valid
    """
    errors: list[str] = []

    for option, value in (
        ("--l1-rpc-url", args.l1_rpc_url),
        ("--l2-relay-to-rpc-url", args.l2_relay_to_rpc_url),
        ("--l2-relay-from-rpc-url", args.l2_relay_from_rpc_url),
    ):
        if not value:
            errors.append(f"Missing required option {option}")
        elif urlparse(value).scheme not in RPC_URL_SCHEMES or not urlparse(value).netloc:
            errors.append(f"Invalid RPC URL for {option}: {value}")

    if not args.wallet_private_key:
        errors.append("Missing required option --wallet-private-key")
    elif not _PRIVATE_KEY.match(args.wallet_private_key):
        errors.append("Invalid wallet private key: expected 32 bytes in hex")

    if not args.l2_transaction_hash:
        errors.append("Missing required option --l2-transaction-hash")
    elif not _TRANSACTION_HASH.match(args.l2_transaction_hash):
        errors.append(f"Invalid transaction hash: {args.l2_transaction_hash}")

    for option, path in (("--network-from", args.network_from), ("--network-to", args.network_to)):
        if path and not Path(path).is_file():
            errors.append(f"Network configuration file for {option} not found: {path}")

    return errors


def load_network_config(path: str | None) -> dict[str, str]:
    """
    Load a custom network configuration file.

    The file is a JSON object mapping configuration keys (contract addresses,
    service URLs) to values. Keys are merged over the relay strategy's
    built-in defaults.

    Args:
        path: Path to the JSON file, or None for no custom configuration

    Returns:
        Configuration values keyed by name

    Raises:
        ValueError: If the file is missing, not a JSON object, or holds an invalid address
    """
    if not path:
        return {}

    config_path = Path(path)
    try:
        with config_path.open() as file:
            data = json.load(file)
    except FileNotFoundError:
        raise ValueError(f"Network configuration file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ValueError(f"Network configuration file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Network configuration file {path} must contain a JSON object")

    config: dict[str, str] = {}
    for key, value in data.items():
        value = str(value)
        if key in ADDRESS_KEYS and not Web3.is_address(value):
            raise ValueError(f"Invalid address for {key} in {path}: {value}")
        config[key] = value

    logger.debug(f"Loaded network configuration from {path}: {sorted(config)}")
    return config
