"""Safe transaction proposals submitted to the Safe transaction service.

A proposal is an off-chain, owner-signed Safe transaction. The service
collects signatures from the other owners until the threshold is met; nothing
is sent on-chain here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Dict, Optional

import requests
from eth_abi import encode
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .abis import ZERO_ADDRESS
from .client import NetworkClient
from .encoding import to_address, to_bytes, to_uint256
from .errors import EncodingError, ProposalError
from .safe import SafeInspector

DEFAULT_SAFE_API = "https://safe-client.safe.global/v1/chains/{chain_id}/transactions/{safe}/propose"
PROPOSAL_ORIGIN_NAME = "SafeProposal Creation"

DOMAIN_SEPARATOR_TYPEHASH = Web3.keccak(text="EIP712Domain(uint256 chainId,address verifyingContract)")
SAFE_TX_TYPEHASH = Web3.keccak(
    text=(
        "SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,"
        "uint256 baseGas,uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)"
    )
)

logger = logging.getLogger(__name__)


class Operation(IntEnum):
    CALL = 0
    DELEGATE_CALL = 1


@dataclass(frozen=True)
class SafeTransaction:
    to: str
    value: int
    data: bytes
    operation: Operation = Operation.CALL
    safe_tx_gas: int = 0
    base_gas: int = 0
    gas_price: int = 0
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS
    nonce: int = 0

    @classmethod
    def create(cls, to: Any, value: Any, data: Any = b"", operation: Any = 0, *, nonce: Any = 0) -> "SafeTransaction":
        try:
            op = Operation(int(operation))
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"operation must be 0 (call) or 1 (delegatecall), got {operation!r}") from exc
        return cls(
            to=to_address(to, field="to"),
            value=to_uint256(value, field="value"),
            data=to_bytes(data, field="data"),
            operation=op,
            nonce=to_uint256(nonce, field="nonce"),
        )


def domain_separator(safe_address: str, chain_id: int) -> bytes:
    return Web3.keccak(
        encode(
            ["bytes32", "uint256", "address"],
            [DOMAIN_SEPARATOR_TYPEHASH, chain_id, Web3.to_checksum_address(safe_address)],
        )
    )


def safe_tx_hash(safe_address: str, tx: SafeTransaction, chain_id: int) -> bytes:
    """Return the EIP-712 hash owners sign for ``tx``."""

    struct_hash = Web3.keccak(
        encode(
            [
                "bytes32",
                "address",
                "uint256",
                "bytes32",
                "uint8",
                "uint256",
                "uint256",
                "uint256",
                "address",
                "address",
                "uint256",
            ],
            [
                SAFE_TX_TYPEHASH,
                tx.to,
                tx.value,
                Web3.keccak(tx.data),
                int(tx.operation),
                tx.safe_tx_gas,
                tx.base_gas,
                tx.gas_price,
                tx.gas_token,
                tx.refund_receiver,
                tx.nonce,
            ],
        )
    )
    return bytes(Web3.keccak(b"\x19\x01" + domain_separator(safe_address, chain_id) + struct_hash))


def sign_safe_tx_hash(signer: LocalAccount, tx_hash: bytes) -> str:
    """Sign the raw hash; ``v`` comes back as 27 or 28 as the Safe expects."""

    signed = signer.unsafe_sign_hash(tx_hash)
    return Web3.to_hex(signed.signature)


def build_proposal_body(
    safe_address: str,
    tx: SafeTransaction,
    tx_hash: bytes,
    sender: str,
    signature: str,
    api_url: str,
) -> Dict[str, Any]:
    return {
        "to": tx.to,
        "value": str(tx.value),
        "data": Web3.to_hex(tx.data) if tx.data else "0x",
        "operation": int(tx.operation),
        "safeTxGas": str(tx.safe_tx_gas),
        "baseGas": str(tx.base_gas),
        "gasPrice": str(tx.gas_price),
        "gasToken": tx.gas_token,
        "refundReceiver": tx.refund_receiver,
        "nonce": str(tx.nonce),
        "safeTxHash": Web3.to_hex(tx_hash),
        "sender": Web3.to_checksum_address(sender),
        "signature": signature,
        "origin": json.dumps({"url": api_url, "name": PROPOSAL_ORIGIN_NAME}, separators=(",", ":")),
    }


class ProposalClient:
    """Build, sign and post Safe transaction proposals."""

    def __init__(
        self,
        client: NetworkClient,
        *,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.client = client
        self.api_url = api_url
        self.session = session or requests.Session()
        self.timeout = timeout

    def endpoint(self, safe_address: str) -> str:
        if self.api_url:
            return self.api_url
        return DEFAULT_SAFE_API.format(chain_id=self.client.chain.chain_id, safe=safe_address)

    def _post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ProposalError(f"failed to send proposal to {url}: {exc}") from exc
        if response.status_code not in (200, 201):
            try:
                detail = json.dumps(response.json(), indent=2)
            except ValueError:
                raise ProposalError(
                    f"HTTP {response.status_code}, failed to parse error body: {response.text}",
                    status_code=response.status_code,
                ) from None
            raise ProposalError(
                f"HTTP {response.status_code}, error response:\n{detail}", status_code=response.status_code
            )
        try:
            return response.json()
        except ValueError:
            return {}

    def propose(
        self,
        safe_address: str,
        signer: LocalAccount,
        *,
        to: Any,
        value: Any = 0,
        data: Any = b"",
        operation: Any = 0,
    ) -> Dict[str, Any]:
        """Sign a Safe transaction at the Safe's current nonce and submit it."""

        safe = to_address(safe_address, field="safe")
        tx = SafeTransaction.create(to, value, data, operation)
        tx = replace(tx, nonce=SafeInspector(self.client, safe).nonce())
        chain_id = self.client.chain.chain_id
        tx_hash = safe_tx_hash(safe, tx, chain_id)
        signature = sign_safe_tx_hash(signer, tx_hash)
        url = self.endpoint(safe)
        body = build_proposal_body(safe, tx, tx_hash, signer.address, signature, url)
        logger.info("Proposing Safe transaction %s to %s", body["safeTxHash"], url)
        response = self._post(url, body)
        if self.client.ledger is not None:
            self.client.ledger.log(
                "safe_propose",
                params={"safe": safe, "to": tx.to, "value": str(tx.value), "operation": int(tx.operation)},
                result={"safe_tx_hash": body["safeTxHash"], "nonce": tx.nonce, "url": url},
            )
        return {"safe": safe, "nonce": tx.nonce, "safe_tx_hash": body["safeTxHash"], "url": url, "response": response}


__all__ = [
    "DEFAULT_SAFE_API",
    "Operation",
    "ProposalClient",
    "SafeTransaction",
    "build_proposal_body",
    "domain_separator",
    "safe_tx_hash",
    "sign_safe_tx_hash",
]
