"""Command line interface for Creditcoin node administration.

Privileged commands are signed with the sudo key (``--sudo-suri``); transfers
use ``--suri``. Status commands only issue read-only queries.
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from pathlib import Path
from typing import Sequence

from substrateinterface.exceptions import SubstrateRequestException

from . import extrinsics
from .accounts import AccountId, InvalidAddressError
from .amounts import AmountError, ctc_frac
from .client import (
    CallCompositionError,
    ChainClient,
    KeypairError,
    StorageItemError,
    load_keypair,
)
from .config import NodeConfig, load_node_config, set_default_config_path
from .extrinsics import ExtrinsicCommand
from .model import ExtrinsicFailedError, TxStreamEndedError
from .rpc_client import (
    ChainRPCClient,
    ConfigurationError,
    RPCError,
    RPCTransportError,
    format_rpc_hint,
)
from .tx_progress import send_extrinsic

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Commands that announce the wait before blocking on inclusion.
ANNOUNCE_WAIT = {"set-code", "switch-to-pos", "set-sudo-key"}


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _parse_account(raw: str) -> AccountId:
    try:
        return AccountId.from_ss58(raw)
    except InvalidAddressError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _parse_amount(raw: str) -> float:
    try:
        amount = float(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid amount: {raw}") from exc
    if not math.isfinite(amount) or amount < 0:
        raise argparse.ArgumentTypeError(f"amount must be a finite, non-negative number: {raw}")
    return amount


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="creditcoin-cli", description="Creditcoin node administration CLI"
    )
    parser.add_argument("--suri", help="Secret URI of the signing account (default: //Alice)")
    parser.add_argument(
        "--sudo-suri",
        help="Secret URI of the sudo account used for privileged calls (default: //Alice)",
    )
    parser.add_argument(
        "--endpoint",
        "-e",
        help="Node websocket endpoint (default: ws://127.0.0.1:9944)",
    )
    parser.add_argument(
        "--rpc-url",
        help="HTTP JSON-RPC endpoint for read-only queries (default: derived from --endpoint)",
    )
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    send_parser = subparsers.add_parser(
        "send-extrinsic", help="build, sign and submit an administrative extrinsic"
    )
    extrinsic_parsers = send_parser.add_subparsers(dest="extrinsic", required=True)

    add_authority_parser = extrinsic_parsers.add_parser(
        "add-authority", help="register an account as a Creditcoin authority (sudo)"
    )
    add_authority_parser.add_argument("who", type=_parse_account, help="SS58 account")

    transfer_parser = extrinsic_parsers.add_parser(
        "transfer", help="transfer CTC from the --suri account"
    )
    transfer_parser.add_argument("to", type=_parse_account, help="Destination SS58 account")
    transfer_parser.add_argument("amount", type=_parse_amount, help="Amount in CTC")

    set_balance_parser = extrinsic_parsers.add_parser(
        "set-balance", help="override an account's free balance (sudo)"
    )
    set_balance_parser.add_argument("account", type=_parse_account, help="SS58 account")
    set_balance_parser.add_argument("amount", type=_parse_amount, help="New free balance in CTC")

    set_code_parser = extrinsic_parsers.add_parser(
        "set-code", help="upgrade the runtime from a wasm blob (sudo)"
    )
    set_code_parser.add_argument("wasm_path", type=Path, help="Path to the runtime wasm")

    extrinsic_parsers.add_parser(
        "switch-to-pos", help="switch the chain to proof of stake (sudo)"
    )

    set_sudo_key_parser = extrinsic_parsers.add_parser(
        "set-sudo-key", help="hand the sudo key to another account (sudo)"
    )
    set_sudo_key_parser.add_argument("who", type=_parse_account, help="New sudo SS58 account")

    get_code_parser = subparsers.add_parser(
        "get-code", help="download the on-chain runtime code"
    )
    get_code_parser.add_argument("output", type=Path, help="File to write the code to")

    get_head_parser = subparsers.add_parser("get-head", help="print the chain head hash")
    get_head_parser.add_argument(
        "--quiet", "-q", action="store_true", help="Print only the hash"
    )

    subparsers.add_parser("get-version", help="print the runtime version")

    count_parser = subparsers.add_parser(
        "count-storage-items", help="count the entries of a storage map"
    )
    count_parser.add_argument("module", help="Pallet name, e.g. System")
    count_parser.add_argument("name", help="Storage item name, e.g. Account")

    return parser


def _config_from_args(args: argparse.Namespace) -> NodeConfig:
    if args.config:
        set_default_config_path(args.config)
    return load_node_config(
        overrides={
            "endpoint": args.endpoint,
            "rpc_url": args.rpc_url,
            "suri": args.suri,
            "sudo_suri": args.sudo_suri,
        }
    )


def build_extrinsic(args: argparse.Namespace, config: NodeConfig) -> ExtrinsicCommand:
    if args.extrinsic == "add-authority":
        return extrinsics.add_authority(args.who)
    if args.extrinsic == "transfer":
        return extrinsics.transfer(args.to, ctc_frac(args.amount))
    if args.extrinsic == "set-balance":
        return extrinsics.set_balance(args.account, ctc_frac(args.amount))
    if args.extrinsic == "set-code":
        code = extrinsics.read_code(args.wasm_path)
        return extrinsics.set_code(code, legacy_weights=config.legacy_weights)
    if args.extrinsic == "switch-to-pos":
        return extrinsics.switch_to_pos(legacy_weights=config.legacy_weights)
    if args.extrinsic == "set-sudo-key":
        return extrinsics.set_sudo_key(args.who)
    raise CLIError(f"Unknown extrinsic: {args.extrinsic}")  # pragma: no cover - argparse enforces choices


def cmd_send_extrinsic(args: argparse.Namespace, config: NodeConfig) -> None:
    command = build_extrinsic(args, config)
    suri = config.sudo_suri if command.privileged else config.suri
    signer = load_keypair(suri, config.ss58_format)

    client = ChainClient.connect(config)
    try:
        if args.extrinsic in ANNOUNCE_WAIT:
            print("Waiting for transaction to be included in a block...")
        send_extrinsic(client, command.call, signer)
    finally:
        client.close()


def cmd_get_head(args: argparse.Namespace, rpc: ChainRPCClient) -> None:
    block_hash = rpc.chain_get_block_hash()
    if block_hash is None:
        raise CLIError("Node did not report a chain head")
    if args.quiet:
        print(block_hash)
    else:
        print(f"Chain head: {block_hash}")


def cmd_get_version(rpc: ChainRPCClient) -> None:
    version = rpc.state_get_runtime_version()
    print(json.dumps(version, indent=2))


def cmd_count_storage_items(args: argparse.Namespace, config: NodeConfig) -> None:
    client = ChainClient.connect(config)
    try:
        print(client.count_storage_items(args.module, args.name))
    finally:
        client.close()


def cmd_get_code(args: argparse.Namespace, rpc: ChainRPCClient) -> None:
    code = rpc.get_code()
    if code is None:
        print("No code found")
        return
    print(f"Writing code to {args.output}")
    args.output.write_bytes(code)


def _format_error(exc: Exception) -> str:
    message = f"error: {exc}\n"
    if isinstance(exc, RPCError):
        hint = format_rpc_hint(exc)
        if hint:
            message += f"Hint: {hint}\n"
    return message


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        config = _config_from_args(args)
        if args.command == "send-extrinsic":
            cmd_send_extrinsic(args, config)
            return
        if args.command == "count-storage-items":
            cmd_count_storage_items(args, config)
            return
        rpc = ChainRPCClient(config)
        if args.command == "get-head":
            cmd_get_head(args, rpc)
        elif args.command == "get-version":
            cmd_get_version(rpc)
        elif args.command == "get-code":
            cmd_get_code(args, rpc)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.warning(
            "Interrupted; a submitted transaction may still be included. Re-query chain state to confirm."
        )
        sys.exit(130)
    except (
        CLIError,
        ConfigurationError,
        RPCError,
        RPCTransportError,
        KeypairError,
        CallCompositionError,
        StorageItemError,
        AmountError,
        TxStreamEndedError,
        ExtrinsicFailedError,
        SubstrateRequestException,
        OSError,
    ) as exc:
        parser.exit(1, _format_error(exc))


if __name__ == "__main__":
    main(sys.argv[1:])
