"""
Input validators for transfer parameters.

Simple predicates plus factories that bind a reference value (decimals, a
chain, an amount bound) and return a predicate.
"""

import re
from typing import TYPE_CHECKING, Callable, TypeVar

from web3 import Web3

if TYPE_CHECKING:
    from .models import Chain, TokenAmount

T = TypeVar("T")
Validator = Callable[[T], bool]

_UNSIGNED_NUMERIC = re.compile(r"^\d*\.?\d*$", re.ASCII)


def is_valid_eth_address(value: str) -> bool:
    return Web3.is_address(value)


def is_unsigned_numeric(value: str) -> bool:
    return _UNSIGNED_NUMERIC.match(value) is not None


def make_matching_decimals_validator(decimals: int) -> Validator[str]:
    def validator(value: str) -> bool:
        return "." not in value or len(value.split(".")[1]) <= decimals

    return validator


def make_not_same_as_chain_validator(chain: "Chain") -> Validator["Chain"]:
    def validator(value: "Chain") -> bool:
        return chain.identifier != value.identifier

    return validator


def make_min_token_amount_validator(minimum: "TokenAmount") -> Validator["TokenAmount"]:
    def validator(value: "TokenAmount") -> bool:
        return minimum.uint256 <= value.uint256

    return validator


def make_max_token_amount_validator(maximum: "TokenAmount") -> Validator["TokenAmount"]:
    def validator(value: "TokenAmount") -> bool:
        return maximum.uint256 >= value.uint256

    return validator
