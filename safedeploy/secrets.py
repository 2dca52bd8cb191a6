"""Signer acquisition from a keystore file, the environment or the keyring.

The private key is turned into a :class:`LocalAccount` immediately and is
never logged or written anywhere; only its source and address are recorded.
"""

from __future__ import annotations

import getpass
import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Tuple

import keyring
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import ValidationError
from keyring.errors import KeyringError

from .errors import ConfigurationError
from .ledger import ForensicLedger

PRIVATE_KEY_ENV = "PRIVATE_KEY"

logger = logging.getLogger(__name__)


def _from_keyfile(path: Path, password: Optional[str]) -> LocalAccount:
    try:
        payload = json.loads(path.expanduser().read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"cannot read keystore file {path}: {exc}") from exc
    if password is None:
        password = getpass.getpass(f"Password for {path.name}: ")
    try:
        key = Account.decrypt(payload, password)
    except ValueError as exc:
        raise ConfigurationError(f"cannot decrypt keystore file {path}: {exc}") from exc
    return Account.from_key(key)


def _from_keyring(service: str) -> Optional[str]:
    try:
        return keyring.get_password(service, PRIVATE_KEY_ENV)
    except KeyringError:
        return None


def _from_key(secret: str, source: str) -> LocalAccount:
    try:
        return Account.from_key(secret.strip())
    except (ValueError, TypeError, ValidationError):
        # error text may contain the key
        raise ConfigurationError(f"{PRIVATE_KEY_ENV} from {source} is not a valid private key") from None


def resolve_signer(
    *,
    keyfile: Optional[Path] = None,
    password: Optional[str] = None,
    keyring_service: str = "safedeploy",
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[LocalAccount, str]:
    """Return the signing account and the name of the source it came from."""

    if keyfile is not None:
        return _from_keyfile(keyfile, password), "keyfile"
    env = os.environ if environ is None else environ
    secret = env.get(PRIVATE_KEY_ENV)
    if secret:
        return _from_key(secret, "environment"), "env"
    secret = _from_keyring(keyring_service)
    if secret:
        return _from_key(secret, "keyring"), "keyring"
    raise ConfigurationError(
        f"no signer available: set {PRIVATE_KEY_ENV}, store it in the keyring service "
        f"'{keyring_service}', or pass --keyfile"
    )


def load_signer(
    *,
    keyfile: Optional[Path] = None,
    password: Optional[str] = None,
    keyring_service: str = "safedeploy",
    ledger: Optional[ForensicLedger] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> LocalAccount:
    account, source = resolve_signer(
        keyfile=keyfile,
        password=password,
        keyring_service=keyring_service,
        environ=environ,
    )
    logger.info("Loaded signer %s from %s", account.address, source)
    if ledger is not None:
        ledger.log("signer_load", params={"source": source}, result={"address": account.address})
    return account


__all__ = ["PRIVATE_KEY_ENV", "load_signer", "resolve_signer"]
