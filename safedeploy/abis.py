"""Contract interfaces and canonical addresses used by safedeploy."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

SAFE_SINGLETON_ADDRESS = "0x29fcB43b46531BcA003ddC8FCB67FFE91900C762"
SAFE_PROXY_FACTORY_ADDRESS = "0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67"
DEFAULT_FALLBACK_HANDLER_ADDRESS = "0xfd0732Dc9E303f09fCEf3a7388Ad10A83459Ec99"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
SENTINEL_ADDRESS = "0x0000000000000000000000000000000000000001"
DEFAULT_SALT_NONCE = 4

# keccak256("ProxyCreation(address,address)")
PROXY_CREATION_TOPIC = "0x4f51faf6c4561ff95f067657e43439f0f856d97c04d9ec9070a6199ad418e235"


def _param(name: str, type_: str, internal_type: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"internalType": internal_type or type_, "name": name, "type": type_}
    entry.update(extra)
    return entry


PROXY_FACTORY_ABI: List[Dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            _param("proxy", "address", indexed=True),
            _param("singleton", "address", indexed=False),
        ],
        "name": "ProxyCreation",
        "type": "event",
    },
    {
        "inputs": [_param("singleton", "address"), _param("data", "bytes")],
        "name": "createProxy",
        "outputs": [_param("proxy", "address")],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            _param("_singleton", "address"),
            _param("initializer", "bytes"),
            _param("saltNonce", "uint256"),
        ],
        "name": "createProxyWithNonce",
        "outputs": [_param("proxy", "address")],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            _param("_singleton", "address"),
            _param("initializer", "bytes"),
            _param("saltNonce", "uint256"),
        ],
        "name": "calculateCreateProxyWithNonceAddress",
        "outputs": [_param("proxy", "address")],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "proxyCreationCode",
        "outputs": [_param("", "bytes")],
        "stateMutability": "pure",
        "type": "function",
    },
]

SAFE_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [],
        "name": "VERSION",
        "outputs": [_param("", "string")],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            _param("_owners", "address[]"),
            _param("_threshold", "uint256"),
            _param("to", "address"),
            _param("data", "bytes"),
            _param("fallbackHandler", "address"),
            _param("paymentToken", "address"),
            _param("payment", "uint256"),
            _param("paymentReceiver", "address", "address payable"),
        ],
        "name": "setup",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "nonce",
        "outputs": [_param("", "uint256")],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getOwners",
        "outputs": [_param("", "address[]")],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getThreshold",
        "outputs": [_param("", "uint256")],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [_param("start", "address"), _param("pageSize", "uint256")],
        "name": "getModulesPaginated",
        "outputs": [_param("array", "address[]"), _param("next", "address")],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getFallbackHandler",
        "outputs": [_param("", "address")],
        "stateMutability": "view",
        "type": "function",
    },
]

SETUP_SIGNATURE = "setup(address[],uint256,address,bytes,address,address,uint256,address)"
CREATE_PROXY_WITH_NONCE_SIGNATURE = "createProxyWithNonce(address,bytes,uint256)"


__all__ = [
    "CREATE_PROXY_WITH_NONCE_SIGNATURE",
    "DEFAULT_FALLBACK_HANDLER_ADDRESS",
    "DEFAULT_SALT_NONCE",
    "PROXY_CREATION_TOPIC",
    "PROXY_FACTORY_ABI",
    "SAFE_ABI",
    "SAFE_PROXY_FACTORY_ADDRESS",
    "SAFE_SINGLETON_ADDRESS",
    "SENTINEL_ADDRESS",
    "SETUP_SIGNATURE",
    "ZERO_ADDRESS",
]
