"""Runtime settings resolved from the environment and ``.env`` files."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from web3 import Web3

from .abis import (
    DEFAULT_FALLBACK_HANDLER_ADDRESS,
    DEFAULT_SALT_NONCE,
    SAFE_PROXY_FACTORY_ADDRESS,
    SAFE_SINGLETON_ADDRESS,
)
from .chains import ChainDescriptor, get_chain
from .errors import ConfigurationError

CHAIN_ENV = "SAFEDEPLOY_CHAIN"
RPC_ENV = "RPC_URL"
HOME_ENV = "SAFEDEPLOY_HOME"
KEYRING_SERVICE_ENV = "SAFEDEPLOY_KEYRING_SERVICE"
LOG_LEVEL_ENV = "SAFEDEPLOY_LOG_LEVEL"
DEFAULT_KEYRING_SERVICE = "safedeploy"


def state_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the directory used for logs and the ledger.

    Defaults to ``~/.safedeploy`` and can be moved with ``SAFEDEPLOY_HOME``.
    """

    env = os.environ if environ is None else environ
    override = env.get(HOME_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".safedeploy"


@dataclass(frozen=True)
class Settings:
    chain: ChainDescriptor
    rpc_url: str
    singleton_address: str = SAFE_SINGLETON_ADDRESS
    proxy_factory_address: str = SAFE_PROXY_FACTORY_ADDRESS
    fallback_handler: str = DEFAULT_FALLBACK_HANDLER_ADDRESS
    salt_nonce: int = DEFAULT_SALT_NONCE
    receipt_timeout: float = 120.0
    poll_interval: float = 0.5
    request_timeout: float = 10.0
    safe_api_url: Optional[str] = None
    home: Path = Path.home() / ".safedeploy"
    keyring_service: str = DEFAULT_KEYRING_SERVICE
    log_level: str = "INFO"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"

    @property
    def ledger_path(self) -> Path:
        return self.log_dir / "safedeploy_audit.jsonl"

    def override(self, **changes: Any) -> "Settings":
        """Return a copy with the non-``None`` values of ``changes`` applied."""

        applied = {key: value for key, value in changes.items() if value is not None}
        if "chain" in applied and "rpc_url" not in applied:
            applied["rpc_url"] = applied["chain"].default_rpc_url
        if "rpc_url" in applied:
            applied["rpc_url"] = _require_rpc(applied["rpc_url"])
        for key in ("singleton_address", "proxy_factory_address", "fallback_handler"):
            if key in applied:
                applied[key] = _checksum(applied[key], key)
        return replace(self, **applied)


def _checksum(value: str, name: str) -> str:
    if not Web3.is_address(value):
        raise ConfigurationError(f"{name} is not a valid address: {value!r}")
    return Web3.to_checksum_address(value)


def _require_rpc(value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ConfigurationError(f"RPC URL must be an http(s) endpoint: {value!r}")
    return value


def _number(env: Mapping[str, str], key: str, default: float, *, cast=float) -> Any:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative, got {raw!r}")
    return value


def load_settings(
    env_file: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from ``env_file`` (or ``./.env``) and the process environment.

    Values already present in the environment win over the file.
    """

    if environ is None:
        load_dotenv(env_file if env_file is not None else Path(".env"), override=False)
        env: Mapping[str, str] = os.environ
    else:
        env = environ

    chain = get_chain(env.get(CHAIN_ENV, "g7"))
    rpc_url = _require_rpc(env.get(RPC_ENV) or chain.default_rpc_url)
    return Settings(
        chain=chain,
        rpc_url=rpc_url,
        singleton_address=_checksum(env.get("SAFE_SINGLETON_ADDRESS", SAFE_SINGLETON_ADDRESS), "SAFE_SINGLETON_ADDRESS"),
        proxy_factory_address=_checksum(
            env.get("SAFE_PROXY_FACTORY_ADDRESS", SAFE_PROXY_FACTORY_ADDRESS), "SAFE_PROXY_FACTORY_ADDRESS"
        ),
        fallback_handler=_checksum(
            env.get("SAFE_FALLBACK_HANDLER", DEFAULT_FALLBACK_HANDLER_ADDRESS), "SAFE_FALLBACK_HANDLER"
        ),
        salt_nonce=_number(env, "SAFE_SALT_NONCE", DEFAULT_SALT_NONCE, cast=int),
        receipt_timeout=_number(env, "SAFEDEPLOY_RECEIPT_TIMEOUT", 120.0),
        poll_interval=_number(env, "SAFEDEPLOY_POLL_INTERVAL", 0.5),
        request_timeout=_number(env, "SAFEDEPLOY_REQUEST_TIMEOUT", 10.0),
        safe_api_url=env.get("SAFE_API_URL") or None,
        home=state_dir(env),
        keyring_service=env.get(KEYRING_SERVICE_ENV, DEFAULT_KEYRING_SERVICE),
        log_level=env.get(LOG_LEVEL_ENV, "INFO"),
    )


__all__ = ["Settings", "load_settings", "state_dir"]
