"""
Shared data models for the cross-chain bridge.

This module contains the value types a transfer is made of (chains, tokens,
amounts) and the mutable metadata records the transfer steps fill in. Every
model converts to and from plain dictionaries; 256-bit quantities are always
serialized as decimal strings so no precision is lost in JSON.
"""

from dataclasses import dataclass
from typing import Any

from .validators import is_unsigned_numeric, make_matching_decimals_validator

UINT256_MAX: int = 2**256 - 1


@dataclass(frozen=True, slots=True, order=True)
class UInt256:
    """Unsigned 256-bit integer.

    Accepts an ``int`` or a decimal string. Arithmetic results are range
    checked, so overflow and underflow raise ``OverflowError`` instead of
    wrapping around.
    """

    value: int

    def __post_init__(self) -> None:
        value: Any = self.value
        if isinstance(value, UInt256):
            value = value.value
        elif isinstance(value, str):
            if not (value.isascii() and value.isdigit()):
                raise ValueError(f"Invalid uint256 string: {value!r}")
            value = int(value)
        elif isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Unsupported uint256 value type: {type(value).__name__}")

        if value < 0 or value > UINT256_MAX:
            raise OverflowError(f"Value {value} is outside the uint256 range")

        object.__setattr__(self, "value", value)

    def __add__(self, other: "UInt256 | int") -> "UInt256":
        return UInt256(self.value + _to_int(other))

    def __sub__(self, other: "UInt256 | int") -> "UInt256":
        return UInt256(self.value - _to_int(other))

    def __mul__(self, other: "UInt256 | int") -> "UInt256":
        return UInt256(self.value * _to_int(other))

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


def _to_int(other: "UInt256 | int") -> int:
    if isinstance(other, UInt256):
        return other.value
    if isinstance(other, bool) or not isinstance(other, int):
        raise TypeError(f"Unsupported operand type: {type(other).__name__}")
    return other


@dataclass(frozen=True, slots=True)
class Chain:
    """Chain descriptor.

    Attributes:
        identifier: Network id of the chain
        name: Human readable chain name
        rpc_url: JSON-RPC endpoint
        request_manager_address: Request manager contract on this chain
        fill_manager_address: Fill manager contract on this chain
    """

    identifier: int
    name: str
    rpc_url: str
    request_manager_address: str
    fill_manager_address: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "rpc_url": self.rpc_url,
            "request_manager_address": self.request_manager_address,
            "fill_manager_address": self.fill_manager_address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Chain":
        return cls(
            identifier=int(data["identifier"]),
            name=data["name"],
            rpc_url=data["rpc_url"],
            request_manager_address=data["request_manager_address"],
            fill_manager_address=data["fill_manager_address"],
        )


@dataclass(frozen=True, slots=True)
class Token:
    """ERC20 token descriptor."""

    address: str
    symbol: str
    decimals: int

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "symbol": self.symbol, "decimals": self.decimals}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        return cls(address=data["address"], symbol=data["symbol"], decimals=int(data["decimals"]))


@dataclass(frozen=True, slots=True)
class TokenAmount:
    """An amount of a token, held in the token's base units."""

    token: Token
    uint256: UInt256

    @classmethod
    def parse(cls, amount: str, token: Token) -> "TokenAmount":
        """
        Convert a human readable decimal amount into base units.

        Args:
            amount: Decimal string such as "1.5"
            token: Token whose decimals define the base unit

        Returns:
            TokenAmount holding the exact base unit quantity

        Raises:
            ValueError: If the string is not an unsigned decimal or has too many decimals
        """
        if not amount or amount == "." or not is_unsigned_numeric(amount):
            raise ValueError(f"Invalid token amount: {amount!r}")
        if not make_matching_decimals_validator(token.decimals)(amount):
            raise ValueError(
                f"Amount {amount} has more than {token.decimals} decimals for {token.symbol}"
            )

        whole, _, fraction = amount.partition(".")
        base_units = int(whole or "0") * 10**token.decimals
        if fraction:
            base_units += int(fraction.ljust(token.decimals, "0"))
        return cls(token=token, uint256=UInt256(base_units))

    def format(self) -> str:
        """Render the amount as a decimal string in whole token units."""
        decimals = self.token.decimals
        whole, fraction = divmod(self.uint256.value, 10**decimals)
        if not fraction:
            return str(whole)
        return f"{whole}.{str(fraction).rjust(decimals, '0').rstrip('0')}"

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token.to_dict(), "amount": str(self.uint256)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenAmount":
        return cls(token=Token.from_dict(data["token"]), uint256=UInt256(data["amount"]))


@dataclass(slots=True)
class RequestMetadata:
    """Metadata of the request transaction on the source chain.

    The identifier is assigned by the request manager and can only be read
    from the chain once the transaction hash is known.
    """

    request_account: str | None = None
    transaction_hash: str | None = None
    identifier: UInt256 | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_account": self.request_account,
            "transaction_hash": self.transaction_hash,
            "identifier": None if self.identifier is None else str(self.identifier),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequestMetadata":
        identifier = data.get("identifier")
        return cls(
            request_account=data.get("request_account"),
            transaction_hash=data.get("transaction_hash"),
            identifier=None if identifier is None else UInt256(identifier),
        )


@dataclass(slots=True)
class RequestFillMetadata:
    """Metadata of the fill observed on the target chain."""

    fill_transaction_hash: str
    filler: str

    def to_dict(self) -> dict[str, Any]:
        return {"fill_transaction_hash": self.fill_transaction_hash, "filler": self.filler}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequestFillMetadata":
        return cls(fill_transaction_hash=data["fill_transaction_hash"], filler=data["filler"])


@dataclass(slots=True)
class Step:
    """A single step of a multi-step action and its progress flags."""

    identifier: str
    label: str
    active: bool = False
    completed: bool = False
    failed: bool = False
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "label": self.label,
            "active": self.active,
            "completed": self.completed,
            "failed": self.failed,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Step":
        return cls(
            identifier=data["identifier"],
            label=data.get("label", ""),
            active=bool(data.get("active", False)),
            completed=bool(data.get("completed", False)),
            failed=bool(data.get("failed", False)),
            error_message=data.get("error_message"),
        )
