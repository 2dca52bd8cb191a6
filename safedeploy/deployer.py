"""Safe proxy deployment orchestrator."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Type

from eth_abi import encode
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError

from .abis import PROXY_FACTORY_ABI
from .client import NetworkClient
from .config import Settings
from .encoding import SetupParameters, encode_create_proxy, encode_setup, to_uint256
from .errors import (
    DecodingError,
    EncodingError,
    SafeDeployError,
    SubmissionError,
)
from .ledger import ForensicLedger
from .logs import extract_proxy_address

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    ENCODING = "encoding"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    EXTRACTING = "extracting"
    PREDICTING = "predicting"
    DONE = "done"


_STAGE_ERRORS: Dict[Stage, Type[SafeDeployError]] = {
    Stage.ENCODING: EncodingError,
    Stage.SUBMITTING: SubmissionError,
    Stage.CONFIRMING: SubmissionError,
    Stage.EXTRACTING: DecodingError,
    Stage.PREDICTING: SubmissionError,
}


@dataclass(frozen=True)
class DeploymentResult:
    safe_address: str
    tx_hash: str
    block_number: int
    gas_used: int
    salt_nonce: int
    chain_id: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Prediction:
    safe_address: str
    salt_nonce: int
    deployed: bool


def proxy_address(
    factory: str,
    singleton: str,
    creation_code: bytes,
    initializer: bytes,
    salt_nonce: int,
) -> str:
    """Return the CREATE2 address the factory assigns for ``initializer`` and ``salt_nonce``.

    salt = keccak(keccak(initializer) ++ saltNonce) and the init code is the
    proxy creation code followed by the singleton as a uint256.
    """

    salt = Web3.keccak(Web3.keccak(bytes(initializer)) + encode(["uint256"], [salt_nonce]))
    init_code_hash = Web3.keccak(bytes(creation_code) + encode(["uint256"], [int(singleton, 16)]))
    digest = Web3.keccak(b"\xff" + bytes.fromhex(factory[2:]) + salt + init_code_hash)
    return Web3.to_checksum_address("0x" + bytes(digest[-20:]).hex())


class SafeDeployer:
    """Encode, submit, confirm and extract a single Safe proxy deployment."""

    def __init__(
        self,
        client: NetworkClient,
        settings: Settings,
        *,
        ledger: Optional[ForensicLedger] = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.ledger = ledger if ledger is not None else client.ledger
        self.stage: Optional[Stage] = None

    def _record(self, action: str, **kwargs: Any) -> None:
        if self.ledger is not None:
            self.ledger.log(action, **kwargs)

    @contextmanager
    def _stage(self, stage: Stage) -> Iterator[None]:
        self.stage = stage
        logger.debug("Entering stage %s", stage.value)
        try:
            yield
        except SafeDeployError as exc:
            exc.stage = exc.stage or stage.value
            self._fail(stage, exc)
            raise
        except Exception as exc:
            error = _STAGE_ERRORS[stage](str(exc) or type(exc).__name__, stage=stage.value)
            self._fail(stage, error)
            raise error from exc

    def _fail(self, stage: Stage, error: SafeDeployError) -> None:
        logger.error("Stage %s failed: %s", stage.value, error.message)
        self._record(
            f"deploy_{stage.value}",
            ok=False,
            severity="ERROR",
            result={"kind": error.kind, "error": error.message, "stage": error.stage},
        )

    def _initializer_and_calldata(self, params: SetupParameters, salt_nonce: int) -> tuple:
        initializer = encode_setup(params)
        calldata = encode_create_proxy(self.settings.singleton_address, initializer, salt_nonce)
        return initializer, calldata

    def deploy(
        self,
        params: SetupParameters,
        signer: LocalAccount,
        *,
        salt_nonce: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> DeploymentResult:
        """Deploy a Safe proxy configured by ``params`` and return its address."""

        salt = self.settings.salt_nonce if salt_nonce is None else salt_nonce
        wait = self.settings.receipt_timeout if timeout is None else timeout
        logger.info("Deploying a new Safe on %s", self.client.chain.name)

        with self._stage(Stage.ENCODING):
            salt = to_uint256(salt, field="salt_nonce")
            _, calldata = self._initializer_and_calldata(params, salt)
            self._record(
                "deploy_encoding",
                params={
                    "owners": list(params.owners),
                    "threshold": params.threshold,
                    "salt_nonce": salt,
                    "singleton": self.settings.singleton_address,
                },
                result={"calldata_bytes": len(calldata)},
            )

        with self._stage(Stage.SUBMITTING):
            self.client.ensure_chain()
            logger.info("Sending deployment transaction...")
            tx_hash = self.client.submit(signer, self.settings.proxy_factory_address, calldata)

        with self._stage(Stage.CONFIRMING):
            logger.info("Waiting for transaction confirmation...")
            receipt = self.client.wait_for_receipt(
                tx_hash, timeout=wait, poll_latency=self.settings.poll_interval
            )

        with self._stage(Stage.EXTRACTING):
            safe_address = extract_proxy_address(receipt["logs"])

        self.stage = Stage.DONE
        result = DeploymentResult(
            safe_address=safe_address,
            tx_hash=Web3.to_hex(tx_hash),
            block_number=int(receipt["blockNumber"]),
            gas_used=int(receipt["gasUsed"]),
            salt_nonce=salt,
            chain_id=self.client.chain.chain_id,
        )
        logger.info("Safe deployed at: %s", safe_address)
        self._record("deploy_done", result=result.as_dict())
        return result

    def predict(self, params: SetupParameters, *, salt_nonce: Optional[int] = None) -> Prediction:
        """Simulate ``createProxyWithNonce`` to learn the address without sending anything.

        An existing proxy makes the simulation revert; the address is then
        derived with CREATE2 from the factory's ``proxyCreationCode``.
        """

        salt = self.settings.salt_nonce if salt_nonce is None else salt_nonce
        with self._stage(Stage.ENCODING):
            salt = to_uint256(salt, field="salt_nonce")
            initializer, _ = self._initializer_and_calldata(params, salt)

        with self._stage(Stage.PREDICTING):
            factory = self.client.contract(self.settings.proxy_factory_address, PROXY_FACTORY_ABI)
            try:
                predicted = factory.functions.createProxyWithNonce(
                    self.settings.singleton_address, bytes(initializer), salt
                ).call()
                reverted = None
            except ContractLogicError as exc:
                # the factory reverts once a proxy exists at the CREATE2 address
                logger.info("createProxyWithNonce simulation reverted, deriving the address: %s", exc)
                creation_code = factory.functions.proxyCreationCode().call()
                predicted = proxy_address(
                    self.settings.proxy_factory_address,
                    self.settings.singleton_address,
                    creation_code,
                    initializer,
                    salt,
                )
                reverted = exc
            address = Web3.to_checksum_address(predicted)
            deployed = len(self.client.web3.eth.get_code(address)) > 0
            if reverted is not None and not deployed:
                raise SubmissionError(f"createProxyWithNonce simulation reverted: {reverted}") from reverted

        self._record(
            "deploy_predict",
            params={"owners": list(params.owners), "threshold": params.threshold, "salt_nonce": salt},
            result={"address": address, "deployed": deployed},
        )
        return Prediction(safe_address=address, salt_nonce=salt, deployed=deployed)


__all__ = ["DeploymentResult", "Prediction", "SafeDeployer", "Stage", "proxy_address"]
