"""Extraction of the deployed proxy address from receipt logs.

The proxy factory emits ``ProxyCreation(address indexed proxy, address
singleton)``. Topic 0 is the event signature hash and topic 1 holds the proxy
address left-padded to 32 bytes. Anything that does not fit that shape is
rejected instead of being coerced into an address.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union

from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3

from .abis import PROXY_CREATION_TOPIC
from .errors import DecodingError, EventNotFoundError

TOPIC_SIZE = 32
ADDRESS_SIZE = 20
PADDING_SIZE = TOPIC_SIZE - ADDRESS_SIZE

TopicLike = Union[bytes, bytearray, str]


def normalise_topic(value: TopicLike) -> bytes:
    """Return ``value`` as exactly 32 raw bytes."""

    if isinstance(value, str):
        try:
            raw = bytes(HexBytes(value))
        except ValueError as exc:
            raise DecodingError(f"topic is not valid hex: {value!r}") from exc
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise DecodingError(f"topic must be bytes or hex, got {type(value).__name__}")
    if len(raw) != TOPIC_SIZE:
        raise DecodingError(f"topic must be {TOPIC_SIZE} bytes, got {len(raw)}")
    return raw


def decode_topic_address(topic: TopicLike) -> ChecksumAddress:
    """Decode an indexed ``address`` topic, refusing non-zero padding."""

    raw = normalise_topic(topic)
    if any(raw[:PADDING_SIZE]):
        raise DecodingError(f"address topic has non-zero padding: 0x{raw.hex()}")
    return Web3.to_checksum_address("0x" + raw[PADDING_SIZE:].hex())


def _topics(log: Mapping[str, Any]) -> list:
    topics = log.get("topics") if isinstance(log, Mapping) else getattr(log, "topics", None)
    return list(topics or [])


def find_log(logs: Iterable[Mapping[str, Any]], topic: TopicLike) -> Optional[Mapping[str, Any]]:
    """Return the first log whose topic 0 equals ``topic`` byte for byte."""

    expected = normalise_topic(topic)
    for log in logs:
        topics = _topics(log)
        if not topics:
            continue
        try:
            first = normalise_topic(topics[0])
        except DecodingError:
            continue
        if first == expected:
            return log
    return None


def extract_proxy_address(
    logs: Iterable[Mapping[str, Any]],
    topic: TopicLike = PROXY_CREATION_TOPIC,
) -> ChecksumAddress:
    """Return the proxy address announced by the first ``ProxyCreation`` log."""

    log = find_log(logs, topic)
    if log is None:
        raise EventNotFoundError("ProxyCreation event not emitted by the deployment transaction")
    topics = _topics(log)
    if len(topics) < 2:
        raise DecodingError(f"ProxyCreation log has {len(topics)} topic(s), expected at least 2")
    return decode_topic_address(topics[1])


__all__ = [
    "decode_topic_address",
    "extract_proxy_address",
    "find_log",
    "normalise_topic",
]
