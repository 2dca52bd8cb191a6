"""Network client: transaction submission, receipts and contract calls."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.types import TxReceipt

from .chains import ChainDescriptor
from .errors import ConfigurationError, ConfirmationTimeout, SubmissionError
from .ledger import ForensicLedger

GAS_MARGIN = 100_000
DEFAULT_PRIORITY_FEE_GWEI = 1

logger = logging.getLogger(__name__)


class NetworkClient:
    """Thin wrapper around a :class:`Web3` instance bound to one chain.

    Holds no per-call state, so one instance can serve any number of calls.
    """

    def __init__(
        self,
        chain: ChainDescriptor,
        *,
        rpc_url: Optional[str] = None,
        request_timeout: float = 10.0,
        ledger: Optional[ForensicLedger] = None,
        web3: Optional[Web3] = None,
    ) -> None:
        self.chain = chain
        self.rpc_url = rpc_url or chain.default_rpc_url
        self.request_timeout = request_timeout
        self.ledger = ledger
        self._web3 = web3

    # -- bootstrap --------------------------------------------------------
    @property
    def web3(self) -> Web3:
        if self._web3 is None:
            provider = Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.request_timeout})
            self._web3 = Web3(provider)
            logger.debug("Connected provider %s for %s", self.rpc_url, self.chain.name)
        return self._web3

    def contract(self, address: str, abi: List[Dict[str, Any]]) -> Any:
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def _record(self, action: str, **kwargs: Any) -> None:
        if self.ledger is not None:
            self.ledger.log(action, **kwargs)

    def ensure_chain(self) -> int:
        """Fail if the endpoint serves a different chain than configured."""

        try:
            remote = int(self.web3.eth.chain_id)
        except Exception as exc:
            raise SubmissionError(f"cannot reach RPC endpoint {self.rpc_url}: {exc}") from exc
        if remote != self.chain.chain_id:
            raise ConfigurationError(
                f"RPC endpoint {self.rpc_url} serves chain {remote}, expected {self.chain.chain_id} ({self.chain.name})"
            )
        return remote

    # -- transactions -----------------------------------------------------
    def _apply_fees(self, tx: Dict[str, Any]) -> None:
        web3 = self.web3
        latest = web3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is None:
            tx.setdefault("gasPrice", int(web3.eth.gas_price))
            return
        try:
            priority = int(web3.eth.max_priority_fee)
        except Exception:
            priority = int(Web3.to_wei(DEFAULT_PRIORITY_FEE_GWEI, "gwei"))
        tx.setdefault("maxPriorityFeePerGas", priority)
        tx.setdefault("maxFeePerGas", int(base_fee) * 2 + priority)

    def _prepare_transaction(self, tx: Dict[str, Any], signer: LocalAccount) -> Dict[str, Any]:
        web3 = self.web3
        tx.setdefault("from", signer.address)
        tx.setdefault("chainId", self.chain.chain_id)
        tx.setdefault("value", 0)
        tx.setdefault("nonce", web3.eth.get_transaction_count(signer.address, "pending"))
        if "gas" not in tx:
            estimate = web3.eth.estimate_gas({k: tx[k] for k in ("from", "to", "data", "value") if k in tx})
            tx["gas"] = int(estimate) + GAS_MARGIN
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            self._apply_fees(tx)
        return tx

    def submit(self, signer: LocalAccount, to: str, data: bytes, *, value: int = 0) -> HexBytes:
        """Sign and broadcast a transaction; return its hash once the node accepts it."""

        tx = {"to": Web3.to_checksum_address(to), "data": HexBytes(data), "value": int(value)}
        try:
            prepared = self._prepare_transaction(tx, signer)
            signed = signer.sign_transaction(prepared)
            tx_hash = HexBytes(self.web3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as exc:
            self._record(
                "tx_submit",
                params={"to": tx["to"], "from": signer.address},
                ok=False,
                severity="ERROR",
                result={"error": str(exc), "kind": type(exc).__name__},
            )
            raise SubmissionError(f"transaction to {tx['to']} rejected: {exc}") from exc
        logger.info("Transaction sent: %s", Web3.to_hex(tx_hash))
        self._record(
            "tx_submit",
            params={"to": prepared["to"], "from": signer.address, "nonce": prepared["nonce"]},
            result={"hash": Web3.to_hex(tx_hash), "gas": prepared["gas"]},
        )
        return tx_hash

    def wait_for_receipt(
        self,
        tx_hash: HexBytes,
        *,
        timeout: float = 120.0,
        poll_latency: float = 0.5,
    ) -> TxReceipt:
        """Block until ``tx_hash`` is mined or ``timeout`` seconds elapse."""

        hex_hash = Web3.to_hex(tx_hash)
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=poll_latency
            )
        except TimeExhausted as exc:
            self._record("tx_receipt", params={"hash": hex_hash}, ok=False, severity="ERROR", result={"timeout": timeout})
            raise ConfirmationTimeout(
                f"transaction {hex_hash} not confirmed within {timeout:g}s", tx_hash=hex_hash
            ) from exc
        except Exception as exc:
            raise SubmissionError(f"failed to fetch receipt for {hex_hash}: {exc}", stage="confirming") from exc
        ok = receipt.get("status") == 1
        self._record(
            "tx_receipt",
            params={"hash": hex_hash},
            ok=ok,
            severity="INFO" if ok else "ERROR",
            result={"block": receipt.get("blockNumber"), "gas_used": receipt.get("gasUsed")},
        )
        if not ok:
            raise SubmissionError(f"transaction {hex_hash} reverted", stage="confirming")
        return receipt


__all__ = ["NetworkClient"]
