"""SolClaw agent runtime decision core."""

from .intent import ParsedIntent, describe_intent, intent_to_params, is_intent_complete, parse_intent
from .rpc import AddressError, ChainRpc, RpcError, SolanaRpcClient
from .safety import (
    SafetyCheck,
    SafetyReport,
    SwapSafetyParams,
    check_swap_safety,
    check_wallet_health,
    preflight_check,
    quick_safety_check,
)
from .simulate import (
    BalanceChange,
    SimulationResult,
    estimate_transaction_cost,
    simulate_transaction,
    will_transaction_succeed,
)
from .tokens import normalize_token

__all__ = [
    "AddressError",
    "BalanceChange",
    "ChainRpc",
    "ParsedIntent",
    "RpcError",
    "SafetyCheck",
    "SafetyReport",
    "SimulationResult",
    "SolanaRpcClient",
    "SwapSafetyParams",
    "check_swap_safety",
    "check_wallet_health",
    "describe_intent",
    "estimate_transaction_cost",
    "intent_to_params",
    "is_intent_complete",
    "normalize_token",
    "parse_intent",
    "preflight_check",
    "quick_safety_check",
    "simulate_transaction",
    "will_transaction_succeed",
]
