"""Tests for the command line entry point and its exit codes."""

from __future__ import annotations

import json

import pytest
from web3 import Web3

from conftest import DEPLOYED_SAFE, SECOND_OWNER, TEST_ADDRESS, TEST_PRIVATE_KEY, make_receipt
from safedeploy import __version__, cli
from safedeploy.abis import SAFE_PROXY_FACTORY_ADDRESS


@pytest.fixture(autouse=True)
def reset_logger(package_logger):
    yield package_logger


@pytest.fixture()
def stub_network(monkeypatch, fake_web3, isolated_home):
    real = cli.NetworkClient

    def factory(chain, **kwargs):
        return real(chain, web3=fake_web3, **kwargs)

    monkeypatch.setattr(cli, "NetworkClient", factory)
    return fake_web3


@pytest.fixture()
def private_key(monkeypatch, isolated_home) -> str:
    monkeypatch.setenv("PRIVATE_KEY", TEST_PRIVATE_KEY)
    return TEST_PRIVATE_KEY


def test_version(capsys) -> None:
    assert cli.main(["--version"]) == 0
    assert __version__ in capsys.readouterr().out


def test_missing_command_prints_help(capsys) -> None:
    assert cli.main([]) == 1
    assert "usage: safedeploy" in capsys.readouterr().out


def test_chains_json(stub_network, capsys) -> None:
    assert cli.main(["chains", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert "2187" in payload["g7"]


def test_deploy_success(stub_network, private_key, isolated_home, capsys) -> None:
    code = cli.main(["deploy", "--owner", TEST_ADDRESS, "--owner", SECOND_OWNER, "--threshold", "2", "--json"])
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["safe_address"] == Web3.to_checksum_address(DEPLOYED_SAFE)
    assert payload["owners"] == [TEST_ADDRESS, SECOND_OWNER]
    assert payload["explorer"].startswith("https://mainnet.game7.io/address/")
    assert payload["explorer_tx"] == "https://mainnet.game7.io/tx/" + payload["tx_hash"]
    assert (isolated_home / "logs" / "safedeploy_audit.jsonl").exists()
    assert (isolated_home / "logs" / "safedeploy.log").exists()


def test_deploy_defaults_owner_to_signer(stub_network, private_key, capsys) -> None:
    assert cli.main(["--json", "deploy"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["owners"] == [TEST_ADDRESS]
    assert payload["threshold"] == 1


def test_deploy_table_output(stub_network, private_key, capsys) -> None:
    assert cli.main(["deploy"]) == 0
    assert "Safe deployed" in capsys.readouterr().out


def test_deploy_without_event_exits_with_failure(stub_network, private_key, capsys) -> None:
    stub_network.eth.receipt = make_receipt(logs=[])
    assert cli.main(["deploy"]) == 1
    err = capsys.readouterr().err
    assert "extracting: ProxyCreation event" in err


def test_deploy_without_signer_fails(stub_network, capsys) -> None:
    assert cli.main(["deploy"]) == 1
    assert "configuration: no signer available" in capsys.readouterr().err


def test_deploy_rejects_invalid_threshold(stub_network, private_key, capsys) -> None:
    assert cli.main(["deploy", "--threshold", "3"]) == 1
    assert "encoding: threshold" in capsys.readouterr().err
    assert stub_network.eth.sent == []


def test_unknown_chain(isolated_home, capsys) -> None:
    assert cli.main(["--chain", "atlantis", "chains"]) == 1
    assert "unknown chain" in capsys.readouterr().err


def test_predict_needs_no_key_with_explicit_owner(stub_network, capsys) -> None:
    stub_network.eth.contracts[SAFE_PROXY_FACTORY_ADDRESS] = {"createProxyWithNonce": lambda *args: DEPLOYED_SAFE}
    assert cli.main(["predict", "--owner", TEST_ADDRESS, "--salt-nonce", "8", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["safe_address"] == Web3.to_checksum_address(DEPLOYED_SAFE)
    assert payload["salt_nonce"] == 8
    assert payload["already_deployed"] is False


def test_propose_rejects_bad_value(stub_network, private_key, capsys) -> None:
    args = ["propose", "--safe", TEST_ADDRESS, "--to", SECOND_OWNER, "--value", "1.5"]
    assert cli.main(args) == 1
    assert "encoding: invalid value" in capsys.readouterr().err


def test_keyboard_interrupt(stub_network, monkeypatch, capsys) -> None:
    def interrupted(*args):
        raise KeyboardInterrupt

    monkeypatch.setitem(cli._HANDLERS, "chains", interrupted)
    assert cli.main(["chains"]) == 130


def test_inspect_rejects_invalid_address(stub_network, capsys) -> None:
    assert cli.main(["inspect", "not-an-address"]) == 1
    err = capsys.readouterr().err
    assert "encoding: safe is not a valid address" in err
    assert "Traceback" not in err
