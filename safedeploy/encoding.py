"""Calldata encoding for Safe setup and proxy factory calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple, Union

from eth_abi.exceptions import EncodingError as AbiEncodingError
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import Web3Exception

from .abis import (
    DEFAULT_FALLBACK_HANDLER_ADDRESS,
    PROXY_FACTORY_ABI,
    SAFE_ABI,
    ZERO_ADDRESS,
)
from .errors import EncodingError

UINT256_MAX = 2**256 - 1

BytesLike = Union[bytes, bytearray, str]

_CODEC = Web3()


def to_address(value: Any, *, field: str) -> str:
    """Return ``value`` as a checksum address or raise :class:`EncodingError`."""

    if isinstance(value, (bytes, bytearray)) and len(value) == 20:
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str) or not Web3.is_address(value):
        raise EncodingError(f"{field} is not a valid address: {value!r}")
    return Web3.to_checksum_address(value)


def to_uint256(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{field} must be an unsigned integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise EncodingError(f"{field} is out of range for uint256: {value}")
    return value


def to_bytes(value: Any, *, field: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        raw = value[2:] if value[:2].lower() == "0x" else value
        if len(raw) % 2:
            raise EncodingError(f"{field} has an odd number of hex digits")
        try:
            return bytes.fromhex(raw)
        except ValueError as exc:
            raise EncodingError(f"{field} is not valid hex: {value!r}") from exc
    raise EncodingError(f"{field} must be bytes or a hex string, got {type(value).__name__}")


@dataclass(frozen=True)
class SetupParameters:
    """Arguments of ``Safe.setup``; build with :meth:`create` to validate."""

    owners: Tuple[str, ...]
    threshold: int
    to: str = ZERO_ADDRESS
    data: bytes = b""
    fallback_handler: str = DEFAULT_FALLBACK_HANDLER_ADDRESS
    payment_token: str = ZERO_ADDRESS
    payment: int = 0
    payment_receiver: str = ZERO_ADDRESS

    @classmethod
    def create(
        cls,
        owners: Iterable[Any],
        threshold: Any = 1,
        *,
        to: Any = ZERO_ADDRESS,
        data: Any = b"",
        fallback_handler: Any = DEFAULT_FALLBACK_HANDLER_ADDRESS,
        payment_token: Any = ZERO_ADDRESS,
        payment: Any = 0,
        payment_receiver: Any = ZERO_ADDRESS,
    ) -> "SetupParameters":
        checksummed = tuple(to_address(owner, field="owner") for owner in owners)
        if not checksummed:
            raise EncodingError("at least one owner is required")
        if len(set(checksummed)) != len(checksummed):
            raise EncodingError("owners must be unique")
        if ZERO_ADDRESS in checksummed:
            raise EncodingError("the zero address cannot be an owner")
        threshold = to_uint256(threshold, field="threshold")
        if threshold == 0 or threshold > len(checksummed):
            raise EncodingError(
                f"threshold must be between 1 and the number of owners ({len(checksummed)}), got {threshold}"
            )
        return cls(
            owners=checksummed,
            threshold=threshold,
            to=to_address(to, field="to"),
            data=to_bytes(data, field="data"),
            fallback_handler=to_address(fallback_handler, field="fallback_handler"),
            payment_token=to_address(payment_token, field="payment_token"),
            payment=to_uint256(payment, field="payment"),
            payment_receiver=to_address(payment_receiver, field="payment_receiver"),
        )

    def as_args(self) -> list:
        return [
            list(self.owners),
            self.threshold,
            self.to,
            self.data,
            self.fallback_handler,
            self.payment_token,
            self.payment,
            self.payment_receiver,
        ]


def _encode(abi: list, fn_name: str, args: list) -> HexBytes:
    contract = _CODEC.eth.contract(abi=abi)
    try:
        encoded = contract.encode_abi(fn_name, args=args)
    except (Web3Exception, AbiEncodingError, TypeError, ValueError) as exc:
        raise EncodingError(f"cannot encode {fn_name}: {exc}") from exc
    return HexBytes(encoded)


def encode_setup(params: SetupParameters) -> HexBytes:
    """Return the ``setup`` calldata used as the proxy initializer."""

    return _encode(SAFE_ABI, "setup", params.as_args())


def encode_create_proxy(singleton: Any, initializer: BytesLike, salt_nonce: Any) -> HexBytes:
    """Return ``createProxyWithNonce(singleton, initializer, saltNonce)`` calldata."""

    args = [
        to_address(singleton, field="singleton"),
        to_bytes(initializer, field="initializer"),
        to_uint256(salt_nonce, field="salt_nonce"),
    ]
    return _encode(PROXY_FACTORY_ABI, "createProxyWithNonce", args)


def parse_calldata(value: Optional[str]) -> bytes:
    """Parse user supplied hex calldata; ``None`` and ``""`` mean empty."""

    if not value:
        return b""
    raw = value[2:] if value[:2].lower() == "0x" else value
    if not raw:
        return b""
    return to_bytes(raw, field="calldata")


__all__ = [
    "SetupParameters",
    "UINT256_MAX",
    "encode_create_proxy",
    "encode_setup",
    "parse_calldata",
    "to_address",
    "to_bytes",
    "to_uint256",
]
