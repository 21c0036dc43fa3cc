"""
Proof encoding utilities for rollup message relaying.

This module provides storage slot derivation, Merkle-Patricia proof
verification and the Merkle tree helpers used by rollup bridges to prove
that an L2 message was committed to L1.
"""

import logging
from typing import Union

import rlp
from hexbytes import HexBytes
from trie import HexaryTrie
from trie.exceptions import BadTrieProof
from web3 import Web3

logger = logging.getLogger(__name__)

# keccak256(abi.encodePacked(uint256(0))), the leaf used to pad OVM state batches
OVM_MERKLE_DEFAULT_LEAF = HexBytes("0x290decd9548b62a8d60345a988386fc84ba6bc95484008f6362f93160ef3e563")


class BlockchainEncoder:
    """Utilities for encoding and verifying rollup proofs."""

    @staticmethod
    def to_bytes_safe(value: Union[HexBytes, bytes, str]) -> bytes:
        """
        Safely convert value to bytes, handling HexBytes, bytes, and hex strings.

        Args:
            value: Value to convert (HexBytes, bytes, or hex string)

        Returns:
            Bytes representation
        """
        if isinstance(value, HexBytes):
            return bytes(value)
        elif isinstance(value, bytes):
            return value
        else:
            return Web3.to_bytes(hexstr=value)

    @staticmethod
    def get_withdrawal_storage_slot(withdrawal_hash: Union[HexBytes, bytes, str]) -> bytes:
        """
        Storage slot of a withdrawal in the Bedrock L2ToL1MessagePasser.

        The passer stores ``sentMessages[withdrawalHash] = true`` in mapping slot 0.
        """
        return Web3.keccak(BlockchainEncoder.to_bytes_safe(withdrawal_hash) + b"\x00" * 32)

    @staticmethod
    def get_ovm_message_storage_slot(
        xdomain_calldata: Union[HexBytes, bytes, str],
        messenger_address: str,
    ) -> bytes:
        """
        Storage slot of a message in the OVM 1.0 L2ToL1MessagePasser.

        The passer stores ``sentMessages[keccak256(calldata ++ messenger)] = true``
        in mapping slot 0.
        """
        message_key = Web3.keccak(
            BlockchainEncoder.to_bytes_safe(xdomain_calldata) + Web3.to_bytes(hexstr=messenger_address)
        )
        return Web3.keccak(message_key + b"\x00" * 32)

    @staticmethod
    def compute_output_root(
        version: bytes,
        state_root: Union[HexBytes, bytes, str],
        message_passer_storage_root: Union[HexBytes, bytes, str],
        block_hash: Union[HexBytes, bytes, str],
    ) -> bytes:
        """Hash an output root proof the way the L2 output oracle does."""
        return Web3.keccak(
            version
            + BlockchainEncoder.to_bytes_safe(state_root)
            + BlockchainEncoder.to_bytes_safe(message_passer_storage_root)
            + BlockchainEncoder.to_bytes_safe(block_hash)
        )

    @staticmethod
    def verify_storage_proof(
        storage_root: Union[HexBytes, bytes, str],
        slot: bytes,
        proof: list[Union[HexBytes, bytes, str]],
    ) -> bytes:
        """
        Check an ``eth_getProof`` storage proof locally.

        Args:
            storage_root: Storage root of the account
            slot: Storage slot the proof is for
            proof: RLP encoded trie nodes as returned by the node

        Returns:
            RLP encoded value stored in the slot

        Raises:
            ValueError: If the proof is invalid or the slot is empty
        """
        nodes = [rlp.decode(BlockchainEncoder.to_bytes_safe(node)) for node in proof]
        try:
            value = HexaryTrie.get_from_proof(
                BlockchainEncoder.to_bytes_safe(storage_root),
                Web3.keccak(slot),
                nodes,
            )
        except BadTrieProof as e:
            raise ValueError(f"Invalid storage proof for slot {Web3.to_hex(slot)}: {e}") from e

        if not value:
            raise ValueError(f"Storage slot {Web3.to_hex(slot)} is empty")
        return value

    @staticmethod
    def encode_proof_nodes(proof: list[Union[HexBytes, bytes, str]]) -> bytes:
        """RLP encode a list of trie nodes into a single witness."""
        return rlp.encode([BlockchainEncoder.to_bytes_safe(node) for node in proof])

    @staticmethod
    def _merkle_default(depth: int) -> bytes:
        default = bytes(OVM_MERKLE_DEFAULT_LEAF)
        for _ in range(depth):
            default = Web3.keccak(default + default)
        return default

    @staticmethod
    def _merkle_parents(level: list[bytes], depth: int) -> list[bytes]:
        if len(level) % 2:
            level = level + [BlockchainEncoder._merkle_default(depth)]
        return [Web3.keccak(level[i] + level[i + 1]) for i in range(0, len(level), 2)]

    @staticmethod
    def get_merkle_root(leaves: list[Union[HexBytes, bytes, str]]) -> bytes:
        """
        Root of an OVM state batch tree.

        Odd levels are padded with the default node of that depth.
        """
        if not leaves:
            raise ValueError("Cannot build a Merkle tree without leaves")

        level = [BlockchainEncoder.to_bytes_safe(leaf) for leaf in leaves]
        depth = 0
        while len(level) > 1:
            level = BlockchainEncoder._merkle_parents(level, depth)
            depth += 1
        return level[0]

    @staticmethod
    def get_merkle_proof(leaves: list[Union[HexBytes, bytes, str]], index: int) -> list[bytes]:
        """
        Sibling path from leaf ``index`` up to the root of an OVM state batch tree.

        Raises:
            ValueError: If the index is out of range
        """
        if not 0 <= index < len(leaves):
            raise ValueError(f"Leaf index {index} out of range for {len(leaves)} leaves")

        level = [BlockchainEncoder.to_bytes_safe(leaf) for leaf in leaves]
        siblings: list[bytes] = []
        depth = 0
        while len(level) > 1:
            sibling_index = index ^ 1
            if sibling_index < len(level):
                siblings.append(level[sibling_index])
            else:
                siblings.append(BlockchainEncoder._merkle_default(depth))
            level = BlockchainEncoder._merkle_parents(level, depth)
            index //= 2
            depth += 1
        return siblings
