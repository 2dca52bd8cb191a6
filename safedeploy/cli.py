"""Command line interface for safedeploy."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .chains import KNOWN_CHAINS, get_chain
from .client import NetworkClient
from .config import Settings, load_settings
from .deployer import SafeDeployer
from .encoding import SetupParameters, parse_calldata
from .errors import EncodingError, SafeDeployError
from .ledger import ForensicLedger, configure_logging
from .proposal import ProposalClient
from .safe import SafeInspector
from .secrets import load_signer

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

logger = logging.getLogger("safedeploy.cli")


def _setup_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("Safe setup")
    group.add_argument("--owner", action="append", dest="owners", help="Owner address (repeatable, default: signer)")
    group.add_argument("--threshold", type=int, default=1, help="Confirmations required (default: 1)")
    group.add_argument("--salt-nonce", type=int, default=None, help="CREATE2 salt nonce")
    group.add_argument("--fallback-handler", default=None, help="Fallback handler address")
    group.add_argument("--setup-to", default=None, help="Delegate-call target executed during setup")
    group.add_argument("--setup-data", default=None, help="Hex calldata for the setup delegate call")
    group.add_argument("--payment-token", default=None, help="Token used to pay the deployer (zero = native)")
    group.add_argument("--payment", type=int, default=0, help="Payment amount in the token's base unit")
    group.add_argument("--payment-receiver", default=None, help="Receiver of the deployment payment")
    return parent


def _signer_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--keyfile", "-k", type=Path, default=None, help="Path to an encrypted keystore file")
    parent.add_argument("--password", "-p", default=None, help="Keystore password (prompted when omitted)")
    return parent


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="safedeploy", description="Deploy and operate Safe multisig proxies")
    parser.add_argument("--version", action="store_true", help="Display version information and exit")
    parser.add_argument("--chain", default=None, help="Chain name or id (default: g7)")
    parser.add_argument("--rpc", default=None, help="Override the chain's RPC URL")
    parser.add_argument("--env-file", type=Path, default=None, help="Load settings from this .env file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    parser.add_argument("--json", action="store_true", help="Print machine readable JSON")
    subparsers = parser.add_subparsers(dest="command")

    output = argparse.ArgumentParser(add_help=False)
    output.add_argument("--json", action="store_true", default=argparse.SUPPRESS, help="Print machine readable JSON")

    setup = _setup_options()
    signer = _signer_options()

    deploy = subparsers.add_parser("deploy", parents=[setup, signer, output], help="Deploy a new Safe proxy")
    deploy.add_argument("--timeout", type=float, default=None, help="Seconds to wait for confirmation")

    subparsers.add_parser(
        "predict",
        parents=[setup, signer, output],
        help="Predict the Safe address without sending a transaction",
    )

    inspect = subparsers.add_parser("inspect", parents=[output], help="Show owners, threshold and modules of a Safe")
    inspect.add_argument("safe", help="Safe address")

    propose = subparsers.add_parser("propose", parents=[signer, output], help="Propose a Safe transaction")
    propose.add_argument("--safe", required=True, help="Safe address")
    propose.add_argument("--to", required=True, help="Recipient address")
    propose.add_argument("--value", default="0", help="Value in wei")
    propose.add_argument("--calldata", default="", help="Hex-encoded calldata (0x optional)")
    propose.add_argument(
        "--operation",
        type=int,
        default=0,
        choices=(0, 1),
        help="Safe operation type: 0 (call) or 1 (delegatecall)",
    )
    propose.add_argument("--safe-api", default=None, help="Override the Safe transaction service URL")

    subparsers.add_parser("chains", parents=[output], help="List known chains")
    return parser


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.env_file)
    return settings.override(
        chain=get_chain(args.chain) if args.chain else None,
        rpc_url=args.rpc,
        log_level=args.log_level,
    )


def _signer(args: argparse.Namespace, settings: Settings, ledger: ForensicLedger):
    return load_signer(
        keyfile=args.keyfile,
        password=args.password,
        keyring_service=settings.keyring_service,
        ledger=ledger,
    )


def _setup_parameters(args: argparse.Namespace, settings: Settings, owners: Sequence[str]) -> SetupParameters:
    optional: Dict[str, Any] = {
        "to": args.setup_to,
        "payment_token": args.payment_token,
        "payment_receiver": args.payment_receiver,
    }
    return SetupParameters.create(
        owners,
        args.threshold,
        data=parse_calldata(args.setup_data),
        fallback_handler=args.fallback_handler or settings.fallback_handler,
        payment=args.payment,
        **{key: value for key, value in optional.items() if value is not None},
    )


# -- handlers ---------------------------------------------------------------
def _handle_deploy(args, settings, client, ledger) -> Tuple[str, Dict[str, Any]]:
    signer = _signer(args, settings, ledger)
    params = _setup_parameters(args, settings, args.owners or [signer.address])
    deployer = SafeDeployer(client, settings, ledger=ledger)
    result = deployer.deploy(params, signer, salt_nonce=args.salt_nonce, timeout=args.timeout)
    payload = result.as_dict()
    payload["owners"] = list(params.owners)
    payload["threshold"] = params.threshold
    explorer = settings.chain.explorer_address_url(result.safe_address)
    if explorer:
        payload["explorer"] = explorer
    explorer_tx = settings.chain.explorer_tx_url(result.tx_hash)
    if explorer_tx:
        payload["explorer_tx"] = explorer_tx
    return "Safe deployed", payload


def _handle_predict(args, settings, client, ledger) -> Tuple[str, Dict[str, Any]]:
    owners = args.owners
    if not owners:
        owners = [_signer(args, settings, ledger).address]
    params = _setup_parameters(args, settings, owners)
    prediction = SafeDeployer(client, settings, ledger=ledger).predict(params, salt_nonce=args.salt_nonce)
    return "Predicted Safe address", {
        "safe_address": prediction.safe_address,
        "salt_nonce": prediction.salt_nonce,
        "already_deployed": prediction.deployed,
        "owners": list(params.owners),
        "threshold": params.threshold,
    }


def _handle_inspect(args, settings, client, ledger) -> Tuple[str, Dict[str, Any]]:
    return "Safe", SafeInspector(client, args.safe).info()


def _handle_propose(args, settings, client, ledger) -> Tuple[str, Dict[str, Any]]:
    try:
        value = int(args.value, 10)
    except ValueError as exc:
        raise EncodingError(f"invalid value: {args.value}") from exc
    data = parse_calldata(args.calldata)
    signer = _signer(args, settings, ledger)
    proposals = ProposalClient(
        client,
        api_url=args.safe_api or settings.safe_api_url,
        timeout=settings.request_timeout,
    )
    result = proposals.propose(args.safe, signer, to=args.to, value=value, data=data, operation=args.operation)
    result.pop("response", None)
    return "Proposal submitted", result


def _handle_chains(args, settings, client, ledger) -> Tuple[str, Dict[str, Any]]:
    return "Known chains", {
        chain.aliases[0] if chain.aliases else str(chain.chain_id): (
            f"{chain.name} (id {chain.chain_id}, {chain.native_currency.symbol}) {chain.default_rpc_url}"
        )
        for chain in KNOWN_CHAINS
    }


_HANDLERS = {
    "deploy": _handle_deploy,
    "predict": _handle_predict,
    "inspect": _handle_inspect,
    "propose": _handle_propose,
    "chains": _handle_chains,
}


# -- output -----------------------------------------------------------------
def _render(console: Console, title: str, payload: Dict[str, Any]) -> None:
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("field", style="#00B7FF")
    table.add_column("value")
    for key, value in payload.items():
        if isinstance(value, (list, tuple)):
            value = "\n".join(str(item) for item in value) or "-"
        table.add_row(key, "-" if value is None else escape(str(value)))
    console.print(table)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(f"safedeploy {__version__}")
        return EXIT_OK
    if args.command is None:
        parser.print_help()
        return EXIT_FAILURE

    console = Console(highlight=False)
    err_console = Console(stderr=True, highlight=False)
    try:
        settings = _settings(args)
        configure_logging(settings.log_dir, settings.log_level)
        ledger = ForensicLedger(settings.ledger_path, keyring_service=settings.keyring_service)
        client = NetworkClient(
            settings.chain,
            rpc_url=settings.rpc_url,
            request_timeout=settings.request_timeout,
            ledger=ledger,
        )
        title, payload = _HANDLERS[args.command](args, settings, client, ledger)
    except SafeDeployError as exc:
        logger.error("%s failed (%s): %s", args.command, exc.kind, exc.describe())
        err_console.print(f"[bold red]{exc.kind}[/] {escape(exc.describe())}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        err_console.print("[yellow]Interrupted[/]")
        return EXIT_INTERRUPTED

    if args.json:
        json.dump(payload, sys.stdout, indent=2, default=str)
        sys.stdout.write("\n")
    else:
        _render(console, title, payload)
    return EXIT_OK


__all__ = ["main"]
