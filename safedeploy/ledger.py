"""Logging setup and the append-only forensic ledger."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
import stat
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import keyring
from keyring.errors import KeyringError

LOGGER_NAME = "safedeploy"
LOG_FORMAT = "%(asctime)s - safedeploy - %(levelname)s - %(message)s"
HMAC_KEY_ENV = "AUDIT_HMAC_KEY"
SIGNATURE_OK = "✅"
SIGNATURE_WARN = "⚠️"
SIGNATURE_ERR = "💥"
TAIL_CHUNK = 4096
FILE_HANDLER_NAME = "safedeploy.file"
STREAM_HANDLER_NAME = "safedeploy.stderr"


def _ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _ensure_file_permissions(path: Path) -> None:
    try:
        path.chmod(stat.S_IRUSR | stat.S_IWUSR)
    except OSError:  # pragma: no cover - permission handling best effort
        return


def _canonical(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


class ForensicLedger:
    """Append-only JSONL ledger with hash chaining and optional HMAC."""

    def __init__(
        self,
        path: Path,
        *,
        hmac_key_env: str = HMAC_KEY_ENV,
        keyring_service: Optional[str] = None,
    ) -> None:
        self.path = path
        self.hmac_key_env = hmac_key_env
        self.keyring_service = keyring_service
        _ensure_directory(self.path.parent)
        self.path.touch(exist_ok=True)
        _ensure_file_permissions(self.path)

    # -- internal helpers -------------------------------------------------
    def _load_last_hash(self) -> str:
        buffer = b""
        try:
            with self.path.open("rb") as handle:
                handle.seek(0, os.SEEK_END)
                position = handle.tell()
                while position > 0:
                    step = min(TAIL_CHUNK, position)
                    position -= step
                    handle.seek(position)
                    buffer = handle.read(step) + buffer
                    if b"\n" in buffer.rstrip(b"\n"):
                        break
        except OSError:
            return ""
        lines = buffer.strip().splitlines()
        if not lines:
            return ""
        try:
            payload = json.loads(lines[-1].decode("utf-8"))
        except ValueError:
            return ""
        return str(payload.get("hash", ""))

    def _hmac_key(self) -> Optional[bytes]:
        secret: Optional[str] = None
        if self.keyring_service:
            try:
                secret = keyring.get_password(self.keyring_service, self.hmac_key_env)
            except KeyringError:
                secret = None
        if not secret:
            secret = os.getenv(self.hmac_key_env)
        return secret.encode("utf-8") if secret else None

    def _signature(self, ok: bool, severity: str) -> str:
        if not ok:
            return SIGNATURE_ERR
        if severity.upper() in {"WARNING", "WARN"}:
            return SIGNATURE_WARN
        return SIGNATURE_OK

    # -- public API -------------------------------------------------------
    def log(
        self,
        action: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        result: Optional[Dict[str, Any]] = None,
        ok: bool = True,
        severity: str = "INFO",
    ) -> Dict[str, Any]:
        """Append a forensic record and return the serialised payload."""

        record = {
            "ts": time.time(),
            "action": action,
            "params": params or {},
            "result": result or {},
            "ok": bool(ok),
            "severity": severity.upper(),
            "signature": self._signature(ok, severity),
        }
        envelope = {"prev": self._load_last_hash(), **record}
        envelope["hash"] = hashlib.sha256(_canonical(envelope)).hexdigest()
        hmac_key = self._hmac_key()
        if hmac_key:
            envelope["hmac"] = hmac.new(hmac_key, _canonical(envelope), hashlib.sha256).hexdigest()
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(envelope, ensure_ascii=False, default=str) + "\n")
        return envelope

    def entries(self) -> List[Dict[str, Any]]:
        lines = self.path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]

    def verify(self) -> Optional[int]:
        """Return the index of the first broken record, or ``None`` if intact."""

        hmac_key = self._hmac_key()
        previous = ""
        for index, entry in enumerate(self.entries()):
            body = {k: v for k, v in entry.items() if k not in {"hash", "hmac"}}
            if body.get("prev") != previous:
                return index
            if hashlib.sha256(_canonical(body)).hexdigest() != entry.get("hash"):
                return index
            if hmac_key and "hmac" in entry:
                signed = {k: v for k, v in entry.items() if k != "hmac"}
                expected = hmac.new(hmac_key, _canonical(signed), hashlib.sha256).hexdigest()
                if not hmac.compare_digest(expected, entry["hmac"]):
                    return index
            previous = entry["hash"]
        return None


def configure_logging(log_dir: Path, level: str = "INFO") -> logging.Logger:
    """Attach the package file and stderr handlers once per log directory."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    own = {handler.get_name(): handler for handler in logger.handlers}
    log_file = (log_dir / "safedeploy.log").resolve()
    formatter = logging.Formatter(LOG_FORMAT)

    current = own.get(FILE_HANDLER_NAME)
    if current is not None and Path(current.baseFilename) != log_file:
        logger.removeHandler(current)
        current.close()
        current = None
    if current is None:
        _ensure_directory(log_dir)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.set_name(FILE_HANDLER_NAME)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if STREAM_HANDLER_NAME not in own:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.set_name(STREAM_HANDLER_NAME)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    logger.propagate = False
    logger.debug("%s Logger initialised", SIGNATURE_OK)
    return logger


__all__ = ["FILE_HANDLER_NAME", "ForensicLedger", "LOGGER_NAME", "STREAM_HANDLER_NAME", "configure_logging"]
