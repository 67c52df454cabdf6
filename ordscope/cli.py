"""Command-line interface for ordscope.

Three commands are exposed: ``inscription`` fetches and displays a single
inscription, ``scan`` walks a block and/or transaction in one pass (with
category filters, extraction and "open on web"), and ``explore`` starts the
interactive explorer.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Sequence

from .chain import ChainSource, ChainSourceError, parse_block_ref
from .config import ConfigurationError, _coerce_bool, load_rpc_config, set_default_config_path
from .extract import extract_all
from .filters import FILTER_NAMES, FilterError, FilterSet
from .index import InscriptionIndex
from .inscription import DEFAULT_WEB_BASE, InscriptionIdError, parse_inscription_ref
from .navigator import NavigationError, Navigator, ScanScope, ScopeError
from .render import open_web, render_detail
from .rpc_client import BitcoinRPCClient, RPCError, RPCTransportError, format_rpc_hint

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid or a command cannot complete."""


def _add_rpc_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--rpc-url", help="Override RPC endpoint URL")
    parser.add_argument("--rpc-host", help="Override RPC host")
    parser.add_argument("--rpc-port", type=int, help="Override RPC port")
    parser.add_argument("--rpc-user", help="Override RPC username")
    parser.add_argument("--rpc-password", help="Override RPC password")
    parser.add_argument("--rpc-cookie", help="Path to the node's .cookie file")
    https_group = parser.add_mutually_exclusive_group()
    https_group.add_argument(
        "--rpc-use-https",
        dest="rpc_use_https",
        action="store_const",
        const=True,
        help="Force HTTPS when contacting the node",
    )
    https_group.add_argument(
        "--rpc-use-http",
        dest="rpc_use_https",
        action="store_const",
        const=False,
        help="Force HTTP when contacting the node",
    )
    parser.set_defaults(rpc_use_https=None)


def _add_filter_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--filter",
        dest="filters",
        action="append",
        metavar="CATEGORY",
        help=f"Only show this category; repeat to combine ({', '.join(FILTER_NAMES)})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Find and inspect Ordinals inscriptions via a Bitcoin Core node")
    parser.add_argument("--config", help="Path to a YAML config file (default: ~/.ordscope.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    inscription_parser = subparsers.add_parser(
        "inscription", help="Fetch and display one inscription (<txid>i<n>)"
    )
    inscription_parser.add_argument("inscription_id", help="Inscription id, e.g. <txid>i0")
    inscription_parser.add_argument(
        "--block",
        help="Height or hash of the containing block (avoids needing -txindex)",
    )
    inscription_parser.add_argument("--raw", action="store_true", help="Print JSON content compactly")
    inscription_parser.add_argument("--web", action="store_true", help="Also open the inscription on the web")
    inscription_parser.add_argument("--web-base", default=DEFAULT_WEB_BASE, help="Explorer base URL")
    _add_rpc_arguments(inscription_parser)

    scan_parser = subparsers.add_parser(
        "scan", help="Scan a block and/or transaction for inscriptions"
    )
    scan_parser.add_argument("--block", help="Block height or hash to scan")
    scan_parser.add_argument("--tx", dest="txid", help="Transaction id to scan")
    scan_parser.add_argument("--input", dest="input_index", type=int, help="Only scan this input of --tx")
    _add_filter_argument(scan_parser)
    scan_parser.add_argument("--extract", metavar="DIR", help="Write each inscription to DIR/<id>.<ext>")
    scan_parser.add_argument("--web", action="store_true", help="Open each inscription on the web")
    scan_parser.add_argument("--web-base", default=DEFAULT_WEB_BASE, help="Explorer base URL")
    scan_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit summaries as JSON")
    scan_parser.add_argument("--raw", action="store_true", help="Print JSON content compactly")
    _add_rpc_arguments(scan_parser)

    explore_parser = subparsers.add_parser("explore", help="Browse recent blocks interactively")
    _add_filter_argument(explore_parser)
    explore_parser.add_argument(
        "--page-size", type=int, default=20, help="Blocks per page in the block list (default: 20)"
    )
    explore_parser.add_argument("--web-base", default=DEFAULT_WEB_BASE, help="Explorer base URL")
    _add_rpc_arguments(explore_parser)

    return parser


def _chain_from_args(args: argparse.Namespace) -> ChainSource:
    config = load_rpc_config(
        overrides={
            "endpoint": args.rpc_url,
            "host": args.rpc_host,
            "port": args.rpc_port,
            "user": args.rpc_user,
            "password": args.rpc_password,
            "cookie": args.rpc_cookie,
            "use_https": args.rpc_use_https,
        }
    )
    return ChainSource(BitcoinRPCClient(config))


def _parse_block_arg(raw: str | None):
    if raw is None:
        return None
    try:
        return parse_block_ref(raw)
    except ValueError as exc:
        raise CLIError(str(exc)) from exc


def _scope_from_args(args: argparse.Namespace) -> ScanScope:
    txid = args.txid.strip().lower() if args.txid else None
    return ScanScope(block=_parse_block_arg(args.block), txid=txid, input_index=args.input_index)


def cmd_inscription(args: argparse.Namespace) -> None:
    ref = parse_inscription_ref(args.inscription_id)
    block_ref = _parse_block_arg(args.block)
    chain = _chain_from_args(args)
    index = InscriptionIndex(chain)

    block_hash = None
    if block_ref is not None:
        block = chain.get_block(block_ref)
        block.position_of(ref.txid)
        block_hash = block.hash
        index.transaction(ref.txid, block_hash=block_hash, tx_json=block.transactions.get(ref.txid))
    inscription = index.resolve(ref, block_hash=block_hash)

    print(render_detail(inscription, raw_json=args.raw))
    if args.web:
        print(f"Opened {open_web(inscription, args.web_base)}")


def cmd_scan(args: argparse.Namespace) -> None:
    scope = _scope_from_args(args)
    scope.validate()
    filters = FilterSet.from_names(args.filters)
    navigator = Navigator(_chain_from_args(args), filters=filters)

    inscriptions = navigator.scan(scope)

    if args.as_json:
        print(json.dumps([inscription.summary() for inscription in inscriptions], indent=2))
    elif not inscriptions:
        print("No matching inscriptions found.")
    else:
        print(f"Found {len(inscriptions)} inscription(s) (filters: {filters.describe()})")
        for inscription in inscriptions:
            print()
            print(render_detail(inscription, raw_json=args.raw))

    if args.web:
        for inscription in inscriptions:
            logger.info("Opening %s", open_web(inscription, args.web_base))

    if args.extract:
        report = extract_all(inscriptions, args.extract)
        for path in report.written:
            print(f"wrote {path}", file=sys.stderr)
        if not report.ok:
            for failure in report.failures:
                print(f"failed: {failure}", file=sys.stderr)
            raise CLIError(f"{len(report.failures)} inscription(s) could not be extracted")


def cmd_explore(args: argparse.Namespace) -> None:
    from .console import explore_main

    if args.page_size < 1:
        raise CLIError("--page-size must be positive")
    navigator = Navigator(
        _chain_from_args(args),
        filters=FilterSet.from_names(args.filters),
        page_size=args.page_size,
    )
    explore_main(navigator, web_base=args.web_base)


def _debug_enabled(debug_flag: bool) -> bool:
    return debug_flag or bool(_coerce_bool(os.environ.get("ORDSCOPE_DEBUG")))


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if _debug_enabled(debug) else logging.INFO)


def _error_message(exc: Exception) -> str:
    message = f"error: {exc}\n"
    cause = exc if isinstance(exc, RPCError) else exc.__cause__
    if isinstance(cause, RPCError):
        hint = format_rpc_hint(cause)
        if hint:
            message += f"hint: {hint}\n"
    return message


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.debug)
    if args.config:
        set_default_config_path(args.config)
    try:
        if args.command == "inscription":
            cmd_inscription(args)
        elif args.command == "scan":
            cmd_scan(args)
        elif args.command == "explore":
            cmd_explore(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        parser.exit(130)
    except (
        CLIError,
        ConfigurationError,
        RPCError,
        RPCTransportError,
        ChainSourceError,
        ScopeError,
        FilterError,
        InscriptionIdError,
        NavigationError,
    ) as exc:
        parser.exit(1, _error_message(exc))


if __name__ == "__main__":
    main(sys.argv[1:])
