from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import keyring
import keyring.backend
import pytest
from hexbytes import HexBytes

from safedeploy.abis import PROXY_CREATION_TOPIC
from safedeploy.chains import G7_NETWORK
from safedeploy.client import NetworkClient
from safedeploy.config import Settings
from safedeploy.ledger import FILE_HANDLER_NAME, LOGGER_NAME, STREAM_HANDLER_NAME, ForensicLedger

# Well known development key; never holds funds.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SECOND_OWNER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
DEPLOYED_SAFE = "0xabcabcabcabcabcabcabcabcabcabcabcabcabca"
TX_HASH = HexBytes(b"\x11" * 32)


class MemoryKeyring(keyring.backend.KeyringBackend):
    priority = 1

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self._data.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._data[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        self._data.pop((service, username), None)


def proxy_creation_log(address: str = DEPLOYED_SAFE, *, padding: bytes = b"\x00" * 12) -> Dict[str, Any]:
    return {
        "address": "0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67",
        "topics": [HexBytes(PROXY_CREATION_TOPIC), HexBytes(padding + bytes.fromhex(address[2:]))],
        "data": HexBytes(b""),
    }


def make_receipt(logs: Optional[List[Dict[str, Any]]] = None, *, status: int = 1) -> Dict[str, Any]:
    return {
        "transactionHash": TX_HASH,
        "status": status,
        "blockNumber": 1234,
        "gasUsed": 271_000,
        "logs": [proxy_creation_log()] if logs is None else logs,
    }


class _Call:
    def __init__(self, impl: Callable[..., Any], args: tuple) -> None:
        self._impl = impl
        self._args = args

    def call(self) -> Any:
        return self._impl(*self._args)


class _Functions:
    def __init__(self, impls: Dict[str, Callable[..., Any]]) -> None:
        self._impls = impls

    def __getattr__(self, name: str) -> Callable[..., _Call]:
        impl = self._impls[name]
        return lambda *args: _Call(impl, args)


class FakeContract:
    def __init__(self, address: str, impls: Dict[str, Callable[..., Any]]) -> None:
        self.address = address
        self.functions = _Functions(impls)


class FakeEth:
    """Subset of ``web3.eth`` used by the network client."""

    def __init__(self) -> None:
        self.chain_id = G7_NETWORK.chain_id
        self.gas_price = 10
        self.max_priority_fee = 2
        self.base_fee: Optional[int] = 7
        self.receipt: Dict[str, Any] = make_receipt()
        self.receipt_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.code: Dict[str, bytes] = {}
        self.contracts: Dict[str, Dict[str, Callable[..., Any]]] = {}
        self.sent: List[bytes] = []
        self.estimates: List[Dict[str, Any]] = []

    def get_block(self, identifier: str) -> Dict[str, Any]:
        return {} if self.base_fee is None else {"baseFeePerGas": self.base_fee}

    def get_transaction_count(self, address: str, block: str) -> int:
        return 5

    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        self.estimates.append(tx)
        return 200_000

    def send_raw_transaction(self, raw: bytes) -> HexBytes:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(bytes(raw))
        return TX_HASH

    def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: float, poll_latency: float) -> Dict[str, Any]:
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipt

    def get_code(self, address: str) -> HexBytes:
        return HexBytes(self.code.get(address, b""))

    def contract(self, address: str, abi: list) -> FakeContract:
        return FakeContract(address, self.contracts.get(address, {}))


class FakeWeb3:
    def __init__(self) -> None:
        self.eth = FakeEth()


@pytest.fixture()
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("SAFEDEPLOY_HOME", str(tmp_path))
    monkeypatch.delenv("PRIVATE_KEY", raising=False)
    monkeypatch.delenv("AUDIT_HMAC_KEY", raising=False)
    monkeypatch.delenv("RPC_URL", raising=False)
    monkeypatch.delenv("SAFEDEPLOY_CHAIN", raising=False)
    monkeypatch.chdir(tmp_path)
    keyring.set_keyring(MemoryKeyring())
    return tmp_path


@pytest.fixture()
def ledger(isolated_home: Path) -> ForensicLedger:
    return ForensicLedger(isolated_home / "logs" / "safedeploy_audit.jsonl")


@pytest.fixture()
def settings(isolated_home: Path) -> Settings:
    return Settings(chain=G7_NETWORK, rpc_url=G7_NETWORK.default_rpc_url, home=isolated_home, poll_interval=0.0)


@pytest.fixture()
def fake_web3() -> FakeWeb3:
    return FakeWeb3()


@pytest.fixture()
def client(fake_web3: FakeWeb3, ledger: ForensicLedger) -> NetworkClient:
    return NetworkClient(G7_NETWORK, ledger=ledger, web3=fake_web3)


@pytest.fixture()
def signer():
    from eth_account import Account

    return Account.from_key(TEST_PRIVATE_KEY)


def drop_package_handlers() -> None:
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if handler.get_name() in (FILE_HANDLER_NAME, STREAM_HANDLER_NAME):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture()
def package_logger():
    drop_package_handlers()
    yield logging.getLogger(LOGGER_NAME)
    drop_package_handlers()
