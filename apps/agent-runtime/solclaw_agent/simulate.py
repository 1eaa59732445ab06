"""Transaction simulation previews.

Dry-runs a candidate transaction through the RPC collaborator and reports what
would happen before anything is signed or sent.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .rpc import AddressError, ChainRpc, RpcError, SolanaRpcClient

# 5000 lamports, the base fee for a single signature.
ESTIMATED_FEE_SOL = 0.000005
HIGH_COMPUTE_UNITS = 200_000

WARN_HIGH_COMPUTE = "High compute usage - transaction may be complex"
WARN_TRANSFER = "Transaction includes token/SOL transfers"
WARN_INSUFFICIENT = "Possible insufficient funds"
WARN_SIMULATION_FAILED = "Simulation failed - transaction may be invalid"


@dataclass
class BalanceChange:
    account: str
    before: float
    after: float
    change: float
    token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "account": self.account,
            "before": self.before,
            "after": self.after,
            "change": self.change,
        }
        if self.token:
            payload["token"] = self.token
        return payload


@dataclass
class SimulationResult:
    success: bool
    logs: list[str] = field(default_factory=list)
    units_consumed: int = 0
    fee: float = 0.0
    balance_changes: list[BalanceChange] = field(default_factory=list)
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "logs": list(self.logs),
            "unitsConsumed": self.units_consumed,
            "fee": self.fee,
            "balanceChanges": [change.to_dict() for change in self.balance_changes],
            "warnings": list(self.warnings),
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.error_code is not None:
            payload["errorCode"] = self.error_code
        return payload


def _failure_code(exc: Exception) -> str:
    if isinstance(exc, AddressError):
        return "invalid_address"
    if isinstance(exc, RpcError):
        return "rpc_failed"
    return "simulation_failed"


def _sol_text(value: float) -> str:
    text = format(Decimal(str(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _derive_warnings(logs: list[str], units_consumed: int) -> list[str]:
    warnings: list[str] = []
    if units_consumed > HIGH_COMPUTE_UNITS:
        warnings.append(WARN_HIGH_COMPUTE)
    for line in logs:
        if "Transfer" in line:
            warnings.append(WARN_TRANSFER)
        if "insufficient" in line:
            warnings.append(WARN_INSUFFICIENT)
    return warnings


def simulate_transaction(
    transaction: bytes | str,
    fee_payer: str,
    rpc_url: str | None = None,
    rpc: ChainRpc | None = None,
) -> SimulationResult:
    """Dry-run `transaction` and summarize the outcome.

    The fee is a flat single-signature estimate, not derived from the
    simulated compute. Collaborator failures come back as an unsuccessful
    result carrying the error message.
    """
    try:
        client = rpc if rpc is not None else SolanaRpcClient(rpc_url)
        raw = client.simulate(transaction, fee_payer)
        err = raw.get("err")
        logs = list(raw.get("logs") or [])
        units_consumed = int(raw.get("unitsConsumed") or 0)
    except Exception as exc:
        return SimulationResult(
            success=False,
            logs=[],
            units_consumed=0,
            fee=0.0,
            error=str(exc),
            warnings=[WARN_SIMULATION_FAILED],
            error_code=_failure_code(exc),
        )

    success = err is None
    return SimulationResult(
        success=success,
        logs=logs,
        units_consumed=max(units_consumed, 0),
        fee=ESTIMATED_FEE_SOL,
        error=None if success else json.dumps(err, separators=(",", ":"), default=str),
        warnings=_derive_warnings(logs, units_consumed),
        error_code=None if success else "transaction_error",
    )


def will_transaction_succeed(
    transaction: bytes | str,
    fee_payer: str,
    rpc_url: str | None = None,
    rpc: ChainRpc | None = None,
) -> dict[str, Any]:
    result = simulate_transaction(transaction, fee_payer, rpc_url=rpc_url, rpc=rpc)
    if result.success:
        return {
            "success": True,
            "reason": (
                f"Transaction will succeed. Estimated fee: {_sol_text(result.fee)} SOL, "
                f"compute: {result.units_consumed} units"
            ),
        }
    return {"success": False, "reason": result.error or "Transaction simulation failed"}


def estimate_transaction_cost(
    transaction: bytes | str,
    fee_payer: str,
    rpc_url: str | None = None,
    rpc: ChainRpc | None = None,
) -> dict[str, Any]:
    result = simulate_transaction(transaction, fee_payer, rpc_url=rpc_url, rpc=rpc)
    # Priority fees are not estimated yet.
    return {"fee": result.fee, "computeUnits": result.units_consumed, "priorityFee": 0}
