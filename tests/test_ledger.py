"""Tests for the hash-chained forensic ledger and logging setup."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from pathlib import Path

import keyring

from safedeploy.ledger import FILE_HANDLER_NAME, STREAM_HANDLER_NAME, ForensicLedger, _canonical, configure_logging


def test_records_are_chained(ledger: ForensicLedger) -> None:
    first = ledger.log("deploy_encoding", params={"threshold": 1})
    second = ledger.log("deploy_done", result={"safe": "0xabc"})

    assert first["prev"] == ""
    assert second["prev"] == first["hash"]
    body = {k: v for k, v in second.items() if k != "hash"}
    assert second["hash"] == hashlib.sha256(_canonical(body)).hexdigest()
    assert ledger.verify() is None


def test_signature_reflects_outcome(ledger: ForensicLedger) -> None:
    assert ledger.log("ok")["signature"] == "✅"
    assert ledger.log("warn", severity="warning")["signature"] == "⚠️"
    assert ledger.log("fail", ok=False, severity="ERROR")["signature"] == "💥"


def test_chain_survives_reopen(isolated_home: Path) -> None:
    path = isolated_home / "logs" / "audit.jsonl"
    first = ForensicLedger(path).log("one")
    second = ForensicLedger(path).log("two")
    assert second["prev"] == first["hash"]


def test_tampering_is_detected(ledger: ForensicLedger) -> None:
    ledger.log("one", result={"value": 1})
    ledger.log("two", result={"value": 2})
    ledger.log("three", result={"value": 3})

    lines = ledger.path.read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[1])
    record["result"]["value"] = 99
    lines[1] = json.dumps(record)
    ledger.path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert ledger.verify() == 1


def test_hmac_from_environment(ledger: ForensicLedger, monkeypatch) -> None:
    monkeypatch.setenv("AUDIT_HMAC_KEY", "s3cret")
    entry = ledger.log("signed")
    signed = {k: v for k, v in entry.items() if k != "hmac"}
    expected = hmac.new(b"s3cret", _canonical(signed), hashlib.sha256).hexdigest()
    assert entry["hmac"] == expected
    assert ledger.verify() is None

    monkeypatch.setenv("AUDIT_HMAC_KEY", "other")
    assert ledger.verify() == 0


def test_hmac_from_keyring(isolated_home: Path) -> None:
    keyring.set_password("safedeploy", "AUDIT_HMAC_KEY", "from-keyring")
    ledger = ForensicLedger(isolated_home / "logs" / "audit.jsonl", keyring_service="safedeploy")
    entry = ledger.log("signed")
    assert "hmac" in entry


def _own_handlers(logger: logging.Logger) -> list:
    return [h for h in logger.handlers if h.get_name() in (FILE_HANDLER_NAME, STREAM_HANDLER_NAME)]


def test_configure_logging_writes_file(isolated_home: Path, package_logger) -> None:
    configured = configure_logging(isolated_home / "logs", "debug")
    assert configured.level == logging.DEBUG
    assert len(_own_handlers(configured)) == 2
    configure_logging(isolated_home / "logs")
    assert len(_own_handlers(configured)) == 2
    logging.getLogger("safedeploy.deployer").info("Safe deployed at: 0xabc")
    for handler in configured.handlers:
        handler.flush()
    text = (isolated_home / "logs" / "safedeploy.log").read_text(encoding="utf-8")
    assert "safedeploy - INFO - Safe deployed at: 0xabc" in text


def test_foreign_handler_does_not_block_file_handler(isolated_home: Path, package_logger) -> None:
    foreign = logging.NullHandler()
    package_logger.addHandler(foreign)
    try:
        configure_logging(isolated_home / "logs")
        assert (isolated_home / "logs" / "safedeploy.log").exists()
    finally:
        package_logger.removeHandler(foreign)


def test_file_handler_follows_log_directory(isolated_home: Path, package_logger) -> None:
    configure_logging(isolated_home / "first")
    configure_logging(isolated_home / "second")
    files = [h for h in package_logger.handlers if h.get_name() == FILE_HANDLER_NAME]
    assert len(files) == 1
    assert Path(files[0].baseFilename) == (isolated_home / "second" / "safedeploy.log").resolve()


def test_chain_continues_after_records_longer_than_tail_chunk(ledger: ForensicLedger, monkeypatch) -> None:
    monkeypatch.setattr("safedeploy.ledger.TAIL_CHUNK", 16)
    first = ledger.log("large", params={"blob": "x" * 200})
    second = ledger.log("next")
    assert second["prev"] == first["hash"]
    assert ledger.verify() is None
