"""Read-only views of a deployed Safe."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from web3 import Web3

from .abis import SAFE_ABI, SENTINEL_ADDRESS, ZERO_ADDRESS
from .client import NetworkClient
from .encoding import to_address
from .errors import SubmissionError

MAX_MODULE_PAGES = 100


class SafeInspector:
    """Query the state of a Safe through its singleton interface."""

    def __init__(self, client: NetworkClient, safe_address: str) -> None:
        self.client = client
        self.safe_address = to_address(safe_address, field="safe")
        self._contract: Optional[Any] = None

    @property
    def contract(self) -> Any:
        if self._contract is None:
            self._contract = self.client.contract(self.safe_address, SAFE_ABI)
        return self._contract

    def _call(self, name: str, *args: Any) -> Any:
        try:
            return getattr(self.contract.functions, name)(*args).call()
        except Exception as exc:
            raise SubmissionError(f"{name}() on {self.safe_address} failed: {exc}", stage="inspect") from exc

    # -- safe state -------------------------------------------------------
    def version(self) -> str:
        return str(self._call("VERSION"))

    def nonce(self) -> int:
        return int(self._call("nonce"))

    def owners(self) -> List[str]:
        return [Web3.to_checksum_address(owner) for owner in self._call("getOwners")]

    def threshold(self) -> int:
        return int(self._call("getThreshold"))

    def fallback_handler(self) -> Optional[str]:
        handler = Web3.to_checksum_address(self._call("getFallbackHandler"))
        return None if handler == ZERO_ADDRESS else handler

    def modules(self, page_size: int = 10) -> List[str]:
        """Walk ``getModulesPaginated`` from the sentinel until the list ends."""

        modules: List[str] = []
        cursor = SENTINEL_ADDRESS
        for _ in range(MAX_MODULE_PAGES):
            page, cursor = self._call("getModulesPaginated", cursor, page_size)
            modules.extend(Web3.to_checksum_address(module) for module in page)
            cursor = Web3.to_checksum_address(cursor)
            if cursor in (SENTINEL_ADDRESS, ZERO_ADDRESS) or not page:
                break
        return modules

    def info(self) -> Dict[str, Any]:
        info = {
            "safe": self.safe_address,
            "version": self.version(),
            "owners": self.owners(),
            "threshold": self.threshold(),
            "nonce": self.nonce(),
            "fallback_handler": self.fallback_handler(),
            "modules": self.modules(),
        }
        if self.client.ledger is not None:
            self.client.ledger.log(
                "safe_info",
                params={"safe": self.safe_address},
                result={"owners": len(info["owners"]), "threshold": info["threshold"]},
            )
        return info


__all__ = ["SafeInspector"]
