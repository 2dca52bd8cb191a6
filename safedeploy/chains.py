"""Chain descriptors for the networks safedeploy knows about."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple, Union

from .errors import ConfigurationError


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class ChainDescriptor:
    """Identity and endpoints of an EVM network."""

    chain_id: int
    name: str
    native_currency: NativeCurrency
    rpc_urls: Tuple[str, ...]
    explorer_url: Optional[str] = None
    explorer_api_url: Optional[str] = None
    mainnet: bool = True
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.rpc_urls:
            raise ConfigurationError(f"chain {self.name} has no RPC endpoint")

    @property
    def default_rpc_url(self) -> str:
        return self.rpc_urls[0]

    def explorer_tx_url(self, tx_hash: str) -> Optional[str]:
        if not self.explorer_url:
            return None
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    def explorer_address_url(self, address: str) -> Optional[str]:
        if not self.explorer_url:
            return None
        return f"{self.explorer_url.rstrip('/')}/address/{address}"


G7_NETWORK = ChainDescriptor(
    chain_id=2187,
    name="G7 Network",
    native_currency=NativeCurrency(name="Game7 Token", symbol="G7", decimals=18),
    rpc_urls=("https://mainnet-rpc.game7.io",),
    explorer_url="https://mainnet.game7.io",
    explorer_api_url="https://mainnet.game7.io/api",
    mainnet=True,
    aliases=("g7", "game7"),
)

KNOWN_CHAINS: Tuple[ChainDescriptor, ...] = (G7_NETWORK,)


def _index(chains: Iterable[ChainDescriptor]) -> Dict[str, ChainDescriptor]:
    index: Dict[str, ChainDescriptor] = {}
    for chain in chains:
        index[str(chain.chain_id)] = chain
        index[chain.name.lower()] = chain
        for alias in chain.aliases:
            index[alias.lower()] = chain
    return index


def get_chain(identifier: Union[str, int]) -> ChainDescriptor:
    """Resolve a chain by numeric id, display name or alias."""

    key = str(identifier).strip().lower()
    chain = _index(KNOWN_CHAINS).get(key)
    if chain is None:
        known = ", ".join(sorted(c.aliases[0] if c.aliases else str(c.chain_id) for c in KNOWN_CHAINS))
        raise ConfigurationError(f"unknown chain '{identifier}' (known: {known})")
    return chain


__all__ = ["ChainDescriptor", "G7_NETWORK", "KNOWN_CHAINS", "NativeCurrency", "get_chain"]
