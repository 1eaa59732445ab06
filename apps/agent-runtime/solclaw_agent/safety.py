"""Pre-flight safety evaluation for agent-initiated transactions.

Every evaluation returns a `SafetyReport`; failing conditions are encoded as
`danger` or `blocked` checks rather than raised, so callers branch on
`overall_safe` instead of handling exceptions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .rpc import ChainRpc, SolanaRpcClient

LEVEL_SAFE = "safe"
LEVEL_WARNING = "warning"
LEVEL_DANGER = "danger"
LEVEL_BLOCKED = "blocked"
LEVEL_SEVERITY = MappingProxyType({LEVEL_SAFE: 0, LEVEL_WARNING: 1, LEVEL_DANGER: 2, LEVEL_BLOCKED: 3})

BALANCE_DANGER_PCT = 90
BALANCE_WARNING_PCT = 50
SLIPPAGE_DANGER_BPS = 500
SLIPPAGE_WARNING_BPS = 100
FEE_RESERVE_SOL = 0.001
WALLET_BLOCKED_SOL = 0.001
WALLET_WARNING_SOL = 0.01

RECOMMEND_BLOCKED = "BLOCKED: Transaction cannot proceed due to critical issues"
RECOMMEND_DANGER = "NOT RECOMMENDED: High-risk transaction, proceed with extreme caution"
RECOMMEND_WARNING = "CAUTION: Transaction has some risks, review before proceeding"
RECOMMEND_SAFE = "SAFE: Transaction appears safe to execute"


@dataclass
class SafetyCheck:
    passed: bool
    level: str
    message: str
    details: str | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"passed": self.passed, "level": self.level, "message": self.message}
        if self.details:
            payload["details"] = self.details
        if self.code:
            payload["code"] = self.code
        return payload


@dataclass
class SafetyReport:
    overall_safe: bool
    checks: list[SafetyCheck] = field(default_factory=list)
    recommendation: str = ""

    @property
    def highest_level(self) -> str:
        return _highest_level(self.checks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallSafe": self.overall_safe,
            "checks": [check.to_dict() for check in self.checks],
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class SwapSafetyParams:
    input_amount: float
    input_token: str
    output_token: str
    wallet_balance: float
    slippage_bps: float
    expected_output: float | None = None

    _FIELDS = (
        ("input_amount", "inputAmount", "number"),
        ("input_token", "inputToken", "string"),
        ("output_token", "outputToken", "string"),
        ("wallet_balance", "walletBalance", "number"),
        ("slippage_bps", "slippageBps", "number"),
    )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "SwapSafetyParams":
        """Build from camelCase or snake_case keys; raises ValueError on bad shape."""
        if not isinstance(raw, Mapping):
            raise ValueError("Swap safety params must be an object.")
        values: dict[str, Any] = {}
        for name, camel, kind in cls._FIELDS:
            value = raw.get(camel, raw.get(name))
            if value is None:
                raise ValueError(f"Missing swap safety field '{camel}'.")
            if kind == "number":
                if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
                    raise ValueError(f"Swap safety field '{camel}' must be a number.")
                value = float(value)
            elif not isinstance(value, str):
                raise ValueError(f"Swap safety field '{camel}' must be a string.")
            values[name] = value
        expected = raw.get("expectedOutput", raw.get("expected_output"))
        if expected is not None and (isinstance(expected, bool) or not isinstance(expected, (int, float))):
            raise ValueError("Swap safety field 'expectedOutput' must be a number.")
        return cls(expected_output=None if expected is None else float(expected), **values)


def _highest_level(checks: list[SafetyCheck]) -> str:
    highest = LEVEL_SAFE
    for check in checks:
        if LEVEL_SEVERITY.get(check.level, 0) > LEVEL_SEVERITY[highest]:
            highest = check.level
    return highest


def _is_overall_safe(checks: list[SafetyCheck]) -> bool:
    return not any(check.level in (LEVEL_DANGER, LEVEL_BLOCKED) for check in checks)


def _number_text(value: float) -> str:
    return f"{value:g}"


def _balance_fraction_check(params: SwapSafetyParams) -> SafetyCheck:
    if params.wallet_balance > 0:
        pct = params.input_amount / params.wallet_balance * 100
    else:
        pct = math.inf if params.input_amount > 0 else 0.0
    message = f"Using {pct:.1f}% of wallet balance"
    if pct > BALANCE_DANGER_PCT:
        return SafetyCheck(False, LEVEL_DANGER, message, "Consider keeping reserves for fees and emergencies", "balance_fraction")
    if pct > BALANCE_WARNING_PCT:
        return SafetyCheck(True, LEVEL_WARNING, message, "Large position relative to portfolio", "balance_fraction")
    return SafetyCheck(True, LEVEL_SAFE, message, code="balance_fraction")


def _slippage_check(params: SwapSafetyParams) -> SafetyCheck:
    message = f"Slippage tolerance is {_number_text(params.slippage_bps / 100)}%"
    if params.slippage_bps > SLIPPAGE_DANGER_BPS:
        return SafetyCheck(False, LEVEL_DANGER, message, "High slippage may result in significant value loss", "slippage")
    if params.slippage_bps > SLIPPAGE_WARNING_BPS:
        return SafetyCheck(True, LEVEL_WARNING, message, "Consider lower slippage for better execution", "slippage")
    return SafetyCheck(True, LEVEL_SAFE, message, code="slippage")


def _fee_reserve_check(params: SwapSafetyParams) -> SafetyCheck | None:
    if params.input_token != "SOL" or params.wallet_balance - params.input_amount >= FEE_RESERVE_SOL:
        return None
    return SafetyCheck(
        False,
        LEVEL_BLOCKED,
        "Insufficient SOL remaining for transaction fees",
        f"Need at least {_number_text(FEE_RESERVE_SOL)} SOL for fees after swap",
        "fee_reserve",
    )


def check_swap_safety(params: SwapSafetyParams | Mapping[str, Any]) -> SafetyReport:
    """Score a proposed swap against the wallet's balance and slippage limits."""
    if not isinstance(params, SwapSafetyParams):
        try:
            params = SwapSafetyParams.from_mapping(params)
        except ValueError as exc:
            return SafetyReport(
                overall_safe=False,
                checks=[SafetyCheck(False, LEVEL_BLOCKED, "Invalid swap parameters", str(exc), "invalid_params")],
                recommendation=RECOMMEND_BLOCKED,
            )

    checks = [_balance_fraction_check(params), _slippage_check(params)]
    reserve = _fee_reserve_check(params)
    if reserve is not None:
        checks.append(reserve)

    recommendation = {
        LEVEL_BLOCKED: RECOMMEND_BLOCKED,
        LEVEL_DANGER: RECOMMEND_DANGER,
        LEVEL_WARNING: RECOMMEND_WARNING,
        LEVEL_SAFE: RECOMMEND_SAFE,
    }[_highest_level(checks)]
    return SafetyReport(overall_safe=_is_overall_safe(checks), checks=checks, recommendation=recommendation)


def check_wallet_health(address: str, rpc_url: str | None = None, rpc: ChainRpc | None = None) -> SafetyReport:
    """Check that the wallet holds enough SOL to pay transaction fees.

    Performs one balance lookup through the RPC collaborator. A failed lookup
    is reported as a blocked check, never raised.
    """
    try:
        client = rpc if rpc is not None else SolanaRpcClient(rpc_url)
        balance = float(client.get_balance(address))
    except Exception as exc:
        return SafetyReport(
            overall_safe=False,
            checks=[SafetyCheck(False, LEVEL_BLOCKED, "Failed to check wallet health", str(exc), "wallet_health_failed")],
            recommendation="Unable to verify wallet status",
        )

    if balance < WALLET_BLOCKED_SOL:
        check = SafetyCheck(
            False,
            LEVEL_BLOCKED,
            f"SOL balance ({balance:.6f}) too low for transactions",
            f"Need at least {_number_text(WALLET_BLOCKED_SOL)} SOL for transaction fees",
            "wallet_balance",
        )
    elif balance < WALLET_WARNING_SOL:
        check = SafetyCheck(
            True,
            LEVEL_WARNING,
            f"Low SOL balance: {balance:.4f} SOL",
            "Consider adding more SOL for multiple transactions",
            "wallet_balance",
        )
    else:
        check = SafetyCheck(True, LEVEL_SAFE, f"SOL balance: {balance:.4f} SOL", code="wallet_balance")

    checks = [check]
    overall_safe = _is_overall_safe(checks)
    recommendation = (
        "Wallet is healthy and ready for transactions" if overall_safe else "Wallet has issues that need to be resolved"
    )
    return SafetyReport(overall_safe=overall_safe, checks=checks, recommendation=recommendation)


def preflight_check(
    address: str,
    operation: str,
    params: SwapSafetyParams | Mapping[str, Any] | None = None,
    rpc_url: str | None = None,
    rpc: ChainRpc | None = None,
) -> SafetyReport:
    checks = list(check_wallet_health(address, rpc_url=rpc_url, rpc=rpc).checks)
    if operation == "swap":
        checks.extend(check_swap_safety(params if params is not None else {}).checks)

    highest = _highest_level(checks)
    if highest == LEVEL_BLOCKED:
        recommendation = "BLOCKED"
    elif highest == LEVEL_DANGER:
        recommendation = "NOT RECOMMENDED"
    else:
        recommendation = "SAFE TO PROCEED"
    return SafetyReport(overall_safe=_is_overall_safe(checks), checks=checks, recommendation=recommendation)


def quick_safety_check(report: SafetyReport) -> dict[str, Any]:
    if report.overall_safe:
        warnings = [check for check in report.checks if check.level == LEVEL_WARNING]
        if warnings:
            return {"safe": True, "reason": f"Safe with {len(warnings)} warning(s): {warnings[0].message}"}
        return {"safe": True, "reason": "All safety checks passed"}
    issues = [check.message for check in report.checks if check.level in (LEVEL_DANGER, LEVEL_BLOCKED)]
    return {"safe": False, "reason": "; ".join(issues)}
