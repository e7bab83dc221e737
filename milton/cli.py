"""Command line interface for Milton."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from milton.audit import AuditLog
from milton.config import Config, get_config
from milton.errors import MiltonError
from milton.resolver import Resolver


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2))


def _fail(message: str) -> None:
    print(json.dumps({"error": message}), file=sys.stderr)
    raise SystemExit(1)


def _setup_logging(config: Config, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def cmd_resolve(args: argparse.Namespace, config: Config) -> None:
    resolver = Resolver.from_config(config)
    resolution = resolver.resolve(args.index, args.question, args.context)
    _print(resolution.to_dict())


def cmd_show(args: argparse.Namespace, config: Config) -> None:
    resolver = Resolver.from_config(config)
    resolution = resolver.get(args.index)
    if resolution is None:
        _fail(f"No resolution stored for index {args.index}")
    _print(resolution.to_dict())


def cmd_predictions(args: argparse.Namespace, config: Config) -> None:
    resolver = Resolver.from_config(config)
    entries = resolver.predictions()
    if args.unresolved:
        pending = [index for index in resolver.indexes() if index not in entries or not entries[index].resolved]
        _print({"unresolved": pending})
        return
    _print({index: entry.to_dict() for index, entry in sorted(entries.items())})


def cmd_models(args: argparse.Namespace, config: Config) -> None:
    _print({
        "models": [{"name": m.name, "model_id": m.model_id} for m in config.model_descriptors],
        "quorum": f">= {len(config.model_descriptors) / 2:g} valid probabilities",
        "api_key_set": bool(config.openrouter_api_key),
    })


def cmd_audit(args: argparse.Namespace, config: Config) -> None:
    audit = AuditLog(config.data_dir / "audit.jsonl")
    _print({"events": audit.tail(limit=args.limit, event=args.event)})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="milton")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    resolve = sub.add_parser("resolve", help="Resolve a question index, reusing a stored resolution")
    resolve.add_argument("--index", required=True)
    resolve.add_argument("--question", required=True)
    resolve.add_argument("--context")

    show = sub.add_parser("show", help="Print the stored resolution for an index")
    show.add_argument("--index", required=True)

    predictions = sub.add_parser("predictions", help="Print the compact resolved index")
    predictions.add_argument("--unresolved", action="store_true")

    sub.add_parser("models", help="Print the configured model panel")

    audit = sub.add_parser("audit", help="Print recent audit events")
    audit.add_argument("--limit", type=int, default=20)
    audit.add_argument("--event")

    return parser


COMMANDS = {
    "resolve": cmd_resolve,
    "show": cmd_show,
    "predictions": cmd_predictions,
    "models": cmd_models,
    "audit": cmd_audit,
}


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return
    config = get_config()
    _setup_logging(config, verbose=args.verbose)
    try:
        handler(args, config)
    except MiltonError as exc:
        _fail(str(exc))


if __name__ == "__main__":
    main()
