import math
import pathlib
import sys
import unittest

RUNTIME_ROOT = pathlib.Path("apps/agent-runtime").resolve()
if str(RUNTIME_ROOT) not in sys.path:
    sys.path.insert(0, str(RUNTIME_ROOT))

from solclaw_agent import safety  # noqa: E402
from solclaw_agent.rpc import RpcError  # noqa: E402

WALLET = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class FakeRpc:
    def __init__(self, balance: float = 1.0, exc: Exception | None = None):
        self.balance = balance
        self.exc = exc
        self.balance_calls: list[str] = []

    def get_balance(self, address: str) -> float:
        self.balance_calls.append(address)
        if self.exc is not None:
            raise self.exc
        return self.balance

    def simulate(self, transaction, fee_payer):  # pragma: no cover - unused here
        raise AssertionError("simulate should not be called by safety checks")


def _swap(**overrides) -> dict:
    params = {
        "inputAmount": 1,
        "walletBalance": 100,
        "slippageBps": 50,
        "inputToken": "SOL",
        "outputToken": "USDC",
    }
    params.update(overrides)
    return params


class SwapSafetyTests(unittest.TestCase):
    def test_large_fraction_is_not_recommended(self) -> None:
        report = safety.check_swap_safety(_swap(inputAmount=95, slippageBps=500))
        self.assertFalse(report.overall_safe)
        self.assertIn("NOT RECOMMENDED", report.recommendation)
        self.assertEqual([check.level for check in report.checks], ["danger", "warning"])
        self.assertEqual(report.checks[0].message, "Using 95.0% of wallet balance")
        self.assertEqual(report.checks[1].message, "Slippage tolerance is 5%")

    def test_small_swap_is_safe(self) -> None:
        report = safety.check_swap_safety(_swap())
        self.assertTrue(report.overall_safe)
        self.assertTrue(report.recommendation.startswith("SAFE"))
        self.assertEqual(len(report.checks), 2)
        self.assertTrue(all(check.passed for check in report.checks))

    def test_warnings_keep_report_safe(self) -> None:
        report = safety.check_swap_safety(_swap(inputAmount=60, slippageBps=150, inputToken="USDC", outputToken="SOL"))
        self.assertTrue(report.overall_safe)
        self.assertTrue(report.recommendation.startswith("CAUTION"))
        self.assertEqual([check.level for check in report.checks], ["warning", "warning"])
        self.assertEqual(report.checks[1].message, "Slippage tolerance is 1.5%")

    def test_high_slippage_is_danger(self) -> None:
        report = safety.check_swap_safety(_swap(slippageBps=600))
        self.assertFalse(report.overall_safe)
        self.assertEqual(report.checks[1].level, "danger")
        self.assertFalse(report.checks[1].passed)

    def test_fee_reserve_blocks_sol_swaps(self) -> None:
        report = safety.check_swap_safety(_swap(inputAmount=0.9995, walletBalance=1.0))
        self.assertFalse(report.overall_safe)
        self.assertTrue(report.recommendation.startswith("BLOCKED"))
        self.assertEqual(len(report.checks), 3)
        self.assertEqual(report.checks[2].level, "blocked")
        self.assertEqual(report.checks[2].code, "fee_reserve")
        self.assertEqual(report.checks[2].details, "Need at least 0.001 SOL for fees after swap")

    def test_fee_reserve_only_applies_to_sol(self) -> None:
        report = safety.check_swap_safety(_swap(inputAmount=100, walletBalance=100, inputToken="USDC"))
        self.assertEqual(len(report.checks), 2)
        self.assertEqual(report.highest_level, "danger")

    def test_zero_balance_counts_as_full_balance(self) -> None:
        report = safety.check_swap_safety(_swap(inputAmount=1, walletBalance=0, inputToken="USDC"))
        self.assertEqual(report.checks[0].level, "danger")
        self.assertIn("inf", report.checks[0].message)

    def test_snake_case_and_dataclass_inputs(self) -> None:
        snake = safety.check_swap_safety(
            {"input_amount": 1, "wallet_balance": 100, "slippage_bps": 50, "input_token": "SOL", "output_token": "USDC"}
        )
        direct = safety.check_swap_safety(
            safety.SwapSafetyParams(input_amount=1, input_token="SOL", output_token="USDC", wallet_balance=100, slippage_bps=50)
        )
        self.assertEqual(snake.to_dict(), direct.to_dict())
        self.assertTrue(direct.overall_safe)

    def test_malformed_params_are_blocked(self) -> None:
        params = _swap()
        del params["walletBalance"]
        report = safety.check_swap_safety(params)
        self.assertFalse(report.overall_safe)
        self.assertEqual(report.checks[0].code, "invalid_params")
        self.assertIn("walletBalance", report.checks[0].details)

        report = safety.check_swap_safety(_swap(inputAmount="lots"))
        self.assertEqual(report.checks[0].code, "invalid_params")

    def test_swap_params_reject_nan(self) -> None:
        with self.assertRaises(ValueError):
            safety.SwapSafetyParams.from_mapping(_swap(inputAmount=math.nan))


class WalletHealthTests(unittest.TestCase):
    def test_empty_wallet_is_blocked(self) -> None:
        rpc = FakeRpc(balance=0.0005)
        report = safety.check_wallet_health(WALLET, rpc=rpc)
        self.assertFalse(report.overall_safe)
        self.assertEqual(report.checks[0].level, "blocked")
        self.assertEqual(report.checks[0].message, "SOL balance (0.000500) too low for transactions")
        self.assertEqual(report.recommendation, "Wallet has issues that need to be resolved")
        self.assertEqual(rpc.balance_calls, [WALLET])

    def test_low_wallet_warns(self) -> None:
        report = safety.check_wallet_health(WALLET, rpc=FakeRpc(balance=0.005))
        self.assertTrue(report.overall_safe)
        self.assertEqual(report.checks[0].level, "warning")
        self.assertEqual(report.checks[0].message, "Low SOL balance: 0.0050 SOL")

    def test_funded_wallet_is_healthy(self) -> None:
        report = safety.check_wallet_health(WALLET, rpc=FakeRpc(balance=2.5))
        self.assertTrue(report.overall_safe)
        self.assertEqual(report.checks[0].message, "SOL balance: 2.5000 SOL")
        self.assertEqual(report.recommendation, "Wallet is healthy and ready for transactions")

    def test_rpc_failure_becomes_blocked_check(self) -> None:
        rpc = FakeRpc(exc=RpcError("rpc_unavailable", "RPC request failed: connection refused"))
        report = safety.check_wallet_health(WALLET, rpc=rpc)
        self.assertFalse(report.overall_safe)
        self.assertEqual(len(report.checks), 1)
        self.assertEqual(report.checks[0].level, "blocked")
        self.assertEqual(report.checks[0].message, "Failed to check wallet health")
        self.assertEqual(report.checks[0].details, "RPC request failed: connection refused")
        self.assertEqual(report.recommendation, "Unable to verify wallet status")

    def test_invalid_address_never_reaches_network(self) -> None:
        report = safety.check_wallet_health("not-a-wallet", rpc_url="http://127.0.0.1:9")
        self.assertFalse(report.overall_safe)
        self.assertEqual(report.checks[0].code, "wallet_health_failed")
        self.assertIn("Invalid Solana address", report.checks[0].details)


class PreflightTests(unittest.TestCase):
    def test_swap_preflight_appends_swap_checks(self) -> None:
        report = safety.preflight_check(WALLET, "swap", _swap(), rpc=FakeRpc(balance=100))
        self.assertTrue(report.overall_safe)
        self.assertEqual(report.recommendation, "SAFE TO PROCEED")
        self.assertEqual([check.code for check in report.checks], ["wallet_balance", "balance_fraction", "slippage"])

    def test_non_swap_operation_only_checks_wallet(self) -> None:
        report = safety.preflight_check(WALLET, "transfer", {"amount": 1}, rpc=FakeRpc(balance=0.005))
        self.assertEqual(len(report.checks), 1)
        self.assertTrue(report.overall_safe)
        self.assertEqual(report.recommendation, "SAFE TO PROCEED")

    def test_danger_is_not_recommended(self) -> None:
        report = safety.preflight_check(WALLET, "swap", _swap(inputAmount=95), rpc=FakeRpc(balance=100))
        self.assertFalse(report.overall_safe)
        self.assertEqual(report.recommendation, "NOT RECOMMENDED")

    def test_wallet_failure_blocks(self) -> None:
        rpc = FakeRpc(exc=RpcError("rpc_timeout", "RPC request timed out after 30s."))
        report = safety.preflight_check(WALLET, "swap", _swap(), rpc=rpc)
        self.assertFalse(report.overall_safe)
        self.assertEqual(report.recommendation, "BLOCKED")
        self.assertEqual(len(report.checks), 3)


class QuickSafetyCheckTests(unittest.TestCase):
    def test_all_passed(self) -> None:
        verdict = safety.quick_safety_check(safety.check_swap_safety(_swap()))
        self.assertEqual(verdict, {"safe": True, "reason": "All safety checks passed"})

    def test_first_warning_is_surfaced(self) -> None:
        verdict = safety.quick_safety_check(safety.check_swap_safety(_swap(inputAmount=60, slippageBps=150)))
        self.assertEqual(verdict, {"safe": True, "reason": "Safe with 2 warning(s): Using 60.0% of wallet balance"})

    def test_issues_are_joined(self) -> None:
        report = safety.check_swap_safety(_swap(inputAmount=0.9996, walletBalance=1.0, slippageBps=900))
        verdict = safety.quick_safety_check(report)
        self.assertFalse(verdict["safe"])
        self.assertEqual(
            verdict["reason"],
            "Using 100.0% of wallet balance; Slippage tolerance is 9%; Insufficient SOL remaining for transaction fees",
        )


if __name__ == "__main__":
    unittest.main()
