"""CLI interface for privacy-broker.

Usage:
    # Sanitize text (stdin: raw text, stdout: JSON BrokerResult)
    echo 'mail me at john@x.com' | privacy-broker sanitize

    # Shrink a code+error paste first, then sanitize
    privacy-broker --mode code sanitize < crash_report.md

    # Restore placeholders (stdin: text with tokens, --map: JSON token map)
    echo 'Hello [EMAIL_1]' | privacy-broker restore --map map.json

    # Hard-block check only (exit status 1 when blocked)
    privacy-broker check < message.txt

    # Operator: category counts, or decrypt one audited request
    privacy-broker audit-stats
    privacy-broker audit-decrypt 3f2b...

    # HTTP sidecar on localhost
    privacy-broker serve --port 18792
"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from dataclasses import asdict

from .audit_tool import decrypt_request, decrypt_responses
from .blocker import detect_hard_blockers
from .config import create_broker, load_config, load_from_yaml
from .extractor import extract
from .ledger import Ledger
from .vault import restore


def _config(args: argparse.Namespace) -> dict:
    cfg = load_from_yaml(args.config) if args.config else load_config({})
    if args.data_dir:
        cfg["data_dir"] = args.data_dir
    if args.no_names:
        cfg["mask_names"] = False
    return cfg


def _dump(data: object) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_sanitize(args: argparse.Namespace) -> int:
    """Extract (code mode) and sanitize stdin; nothing is audited."""
    cfg = _config(args)
    cfg["audit_enabled"] = False
    broker = create_broker(cfg)
    candidate, extraction = broker.candidate_text(sys.stdin.read(), args.mode)
    result = broker.redactor.sanitize(candidate, mode=args.mode)
    out = result.to_dict()
    out["extracted"] = bool(extraction and extraction.used)
    _dump(out)
    return 1 if result.blocked else 0


def cmd_restore(args: argparse.Namespace) -> int:
    with open(args.map, encoding="utf-8") as f:
        token_map = json.load(f)
    if "map" in token_map and isinstance(token_map["map"], dict):
        # accept the full output of `sanitize`
        token_map = token_map["map"]
    sys.stdout.write(restore(sys.stdin.read(), token_map))
    return 0


def cmd_extract(args: argparse.Namespace) -> int:
    _dump(asdict(extract(sys.stdin.read())))
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    decision = detect_hard_blockers(sys.stdin.read().replace("\x00", ""))
    _dump({"blocked": decision.blocked, "reason": decision.reason})
    return 1 if decision.blocked else 0


def cmd_audit_stats(args: argparse.Namespace) -> int:
    with Ledger(_config(args)["data_dir"]) as ledger:
        _dump({
            "blocked": ledger.block_count(),
            "categories": ledger.category_counts(args.chat_id),
        })
    return 0


def cmd_audit_decrypt(args: argparse.Namespace) -> int:
    with Ledger(_config(args)["data_dir"]) as ledger:
        request = decrypt_request(ledger, args.request_id)
        if request is None:
            sys.stderr.write(f"no audited request {args.request_id}\n")
            return 2
        request["responses"] = decrypt_responses(ledger, args.request_id)
        _dump(request)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from .server import serve

    serve(create_broker(_config(args)), port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="privacy-broker",
        description="Block, redact and restore sensitive data around LLM calls",
    )
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--data-dir", default=None, help="Audit ledger directory")
    parser.add_argument("--mode", choices=("normal", "code"), default="normal")
    parser.add_argument("--no-names", action="store_true", help="Don't mask name mentions")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PRIVACY_BROKER_LOG_LEVEL", "WARNING"),
        help="Logging level (stderr)",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("sanitize", help="Sanitize text (stdin)")
    p = sub.add_parser("restore", help="Restore placeholders (stdin)")
    p.add_argument("--map", required=True, help="JSON token map file")
    sub.add_parser("extract", help="Minimal-context extraction (stdin)")
    sub.add_parser("check", help="Hard-block check (stdin)")
    p = sub.add_parser("audit-stats", help="Redaction category counts")
    p.add_argument("--chat-id", default=None)
    p = sub.add_parser("audit-decrypt", help="Decrypt one audited request (operator)")
    p.add_argument("request_id")
    p = sub.add_parser("serve", help="Run the HTTP sidecar")
    p.add_argument("--port", type=int, default=int(os.environ.get("PRIVACY_BROKER_PORT", "18792")))
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmds = {
        "sanitize": cmd_sanitize,
        "restore": cmd_restore,
        "extract": cmd_extract,
        "check": cmd_check,
        "audit-stats": cmd_audit_stats,
        "audit-decrypt": cmd_audit_decrypt,
        "serve": cmd_serve,
    }
    return cmds[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
