#!/usr/bin/env python3
"""SolClaw agent runtime CLI.

Exposes intent parsing, safety evaluation and transaction simulation as JSON
commands for agent skill wrappers. Every invocation prints exactly one JSON
object on stdout.
"""

from __future__ import annotations

import argparse
import json
import socket
import sys
from datetime import datetime, timezone
from typing import Any

from .intent import describe_intent, intent_to_params, is_intent_complete, parse_intent
from .rpc import RpcError, default_rpc_url, rpc_commitment, rpc_timeout_sec
from .safety import SafetyReport, check_swap_safety, check_wallet_health, preflight_check, quick_safety_check
from .simulate import estimate_transaction_cost, simulate_transaction, will_transaction_succeed
from .tokens import normalize_token

SUPPORTED_OPERATIONS = ("swap", "transfer", "stake")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def emit(payload: dict) -> int:
    print(json.dumps(payload, separators=(",", ":")))
    return 0


def ok(message: str, **extra: object) -> int:
    payload = {"ok": True, "code": "ok", "message": message}
    payload.update(extra)
    return emit(payload)


def fail(code: str, message: str, action_hint: str | None = None, details: dict | None = None, exit_code: int = 1) -> int:
    payload: dict[str, object] = {"ok": False, "code": code, "message": message}
    if action_hint:
        payload["actionHint"] = action_hint
    if details:
        payload["details"] = details
    emit(payload)
    return exit_code


def require_json_flag(args: argparse.Namespace) -> int | None:
    if getattr(args, "json", False):
        return None
    return fail("missing_flag", "This command requires --json output mode.", "Re-run with --json.", exit_code=2)


def _read_transaction_arg(raw: str) -> str:
    if raw == "-":
        return sys.stdin.read().strip()
    return raw.strip()


def _report_result(report: SafetyReport, success_message: str, blocked_hint: str, **extra: object) -> int:
    verdict = quick_safety_check(report)
    if report.overall_safe:
        return ok(success_message, report=report.to_dict(), reason=verdict["reason"], **extra)
    return fail(
        "safety_blocked",
        verdict["reason"] or report.recommendation,
        blocked_hint,
        {"report": report.to_dict(), **extra},
        exit_code=1,
    )


def cmd_status(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    try:
        timeout_sec = rpc_timeout_sec()
        commitment = rpc_commitment()
    except RpcError as exc:
        return fail(exc.code, str(exc), "Fix SOLCLAW_RPC_* environment variables and retry.", exit_code=1)
    hostname: str | None
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = None
    return ok(
        "Agent runtime is ready.",
        status="ready",
        timestamp=utc_now(),
        rpcUrl=default_rpc_url(),
        rpcTimeoutSec=timeout_sec,
        rpcCommitment=commitment,
        hostname=hostname,
    )


def cmd_intent_parse(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    text = args.text or ""
    if not text.strip():
        return fail("invalid_input", "text must be non-empty.", "Provide the request text with --text.", exit_code=2)
    intent = parse_intent(text)
    complete = is_intent_complete(intent)
    return ok(
        "Intent parsed.",
        intent=intent.to_dict(),
        description=describe_intent(intent),
        complete=complete,
        executionParams=intent_to_params(intent),
        actionHint=intent.clarification_needed,
    )


def cmd_safety_swap(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    report = check_swap_safety(
        {
            "inputAmount": args.input_amount,
            "inputToken": normalize_token(args.input_token) or args.input_token.upper(),
            "outputToken": normalize_token(args.output_token) or args.output_token.upper(),
            "walletBalance": args.wallet_balance,
            "slippageBps": args.slippage_bps,
        }
    )
    return _report_result(
        report,
        report.recommendation,
        "Reduce the amount or slippage tolerance and re-check.",
        recommendation=report.recommendation,
    )


def cmd_wallet_health(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    report = check_wallet_health(args.address, rpc_url=args.rpc_url)
    return _report_result(
        report,
        "Wallet health checked.",
        "Fund the wallet with SOL or verify the address and RPC connectivity, then retry.",
        address=args.address,
        timestamp=utc_now(),
    )


def cmd_preflight(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    params: dict[str, Any] = {}
    if args.params:
        try:
            params = json.loads(args.params)
        except json.JSONDecodeError as exc:
            return fail("invalid_input", f"params must be valid JSON: {exc.msg}.", "Pass --params as a JSON object.", exit_code=2)
        if not isinstance(params, dict):
            return fail("invalid_input", "params must be a JSON object.", "Pass --params as a JSON object.", exit_code=2)
    report = preflight_check(args.address, args.operation, params, rpc_url=args.rpc_url)
    return _report_result(
        report,
        "Preflight checks passed.",
        "Resolve the blocking checks before executing.",
        operation=args.operation,
        recommendation=report.recommendation,
    )


def cmd_simulate_run(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    result = simulate_transaction(_read_transaction_arg(args.transaction), args.fee_payer, rpc_url=args.rpc_url)
    if result.success:
        return ok("Transaction simulated.", simulation=result.to_dict())
    return fail(
        result.error_code or "simulation_failed",
        result.error or "Transaction simulation failed.",
        "Inspect simulation logs and rebuild the transaction before signing.",
        {"simulation": result.to_dict()},
        exit_code=1,
    )


def cmd_simulate_check(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    verdict = will_transaction_succeed(_read_transaction_arg(args.transaction), args.fee_payer, rpc_url=args.rpc_url)
    if verdict["success"]:
        return ok(verdict["reason"], willSucceed=True)
    return fail("simulation_failed", verdict["reason"], "Do not submit this transaction.", {"willSucceed": False}, exit_code=1)


def cmd_simulate_cost(args: argparse.Namespace) -> int:
    chk = require_json_flag(args)
    if chk is not None:
        return chk
    cost = estimate_transaction_cost(_read_transaction_arg(args.transaction), args.fee_payer, rpc_url=args.rpc_url)
    return ok("Transaction cost estimated.", cost=cost)


def _add_simulation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--transaction", required=True, help="Base64 transaction, or '-' to read from stdin.")
    parser.add_argument("--fee-payer", required=True)
    parser.add_argument("--rpc-url")
    parser.add_argument("--json", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="solclaw-agent", add_help=True)
    sub = p.add_subparsers(dest="top")

    st = sub.add_parser("status")
    st.add_argument("--json", action="store_true")
    st.set_defaults(func=cmd_status)

    intent = sub.add_parser("intent")
    intent_sub = intent.add_subparsers(dest="intent_cmd")
    intent_parse = intent_sub.add_parser("parse")
    intent_parse.add_argument("--text", required=True)
    intent_parse.add_argument("--json", action="store_true")
    intent_parse.set_defaults(func=cmd_intent_parse)

    safety = sub.add_parser("safety")
    safety_sub = safety.add_subparsers(dest="safety_cmd")
    safety_swap = safety_sub.add_parser("swap")
    safety_swap.add_argument("--input-amount", required=True, type=float)
    safety_swap.add_argument("--input-token", required=True)
    safety_swap.add_argument("--output-token", required=True)
    safety_swap.add_argument("--wallet-balance", required=True, type=float)
    safety_swap.add_argument("--slippage-bps", required=True, type=int)
    safety_swap.add_argument("--json", action="store_true")
    safety_swap.set_defaults(func=cmd_safety_swap)

    safety_health = safety_sub.add_parser("wallet-health")
    safety_health.add_argument("--address", required=True)
    safety_health.add_argument("--rpc-url")
    safety_health.add_argument("--json", action="store_true")
    safety_health.set_defaults(func=cmd_wallet_health)

    safety_preflight = safety_sub.add_parser("preflight")
    safety_preflight.add_argument("--address", required=True)
    safety_preflight.add_argument("--operation", required=True, choices=SUPPORTED_OPERATIONS)
    safety_preflight.add_argument("--params", help="JSON object of operation parameters.")
    safety_preflight.add_argument("--rpc-url")
    safety_preflight.add_argument("--json", action="store_true")
    safety_preflight.set_defaults(func=cmd_preflight)

    simulate = sub.add_parser("simulate")
    simulate_sub = simulate.add_subparsers(dest="simulate_cmd")
    sim_run = simulate_sub.add_parser("run")
    _add_simulation_args(sim_run)
    sim_run.set_defaults(func=cmd_simulate_run)

    sim_check = simulate_sub.add_parser("check")
    _add_simulation_args(sim_check)
    sim_check.set_defaults(func=cmd_simulate_check)

    sim_cost = simulate_sub.add_parser("cost")
    _add_simulation_args(sim_cost)
    sim_cost.set_defaults(func=cmd_simulate_cost)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
