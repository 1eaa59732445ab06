"""Natural-language intent parsing.

Turns agent requests such as "swap 1 SOL for USDC" into a structured
`ParsedIntent` the runtime can check for completeness, describe back to the
user, and convert into execution parameters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .tokens import normalize_token

ACTIONS = ("swap", "transfer", "stake", "balance", "price", "unknown")

# Checked in order; the first family with a keyword present in the text wins.
ACTION_KEYWORDS: tuple[tuple[str, tuple[str, ...], float], ...] = (
    ("swap", ("swap", "exchange", "trade", "convert", "buy", "sell"), 0.8),
    ("transfer", ("send", "transfer", "pay", "give"), 0.8),
    ("stake", ("stake", "deposit", "lend", "supply", "provide"), 0.7),
    ("balance", ("balance", "how much", "check", "show", "wallet"), 0.9),
    ("price", ("price", "worth", "value", "cost", "quote"), 0.9),
)

COMPLETE_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_SLIPPAGE_BPS = 50
DEFAULT_TRANSFER_TOKEN = "SOL"

_NUMBER = r"(\d+(?:\.\d+)?)"
AMOUNT_RE = re.compile(_NUMBER + r"\s*([a-z]+)?")
SWAP_TARGET_RE = re.compile(r"(?:\b(?:for|to|into)|→|->)\s+([a-z]+)")
BUY_RE = re.compile(r"buy\s+([a-z]+)\s+(?:with|using)\s+" + _NUMBER + r"\s*([a-z]+)?")
SELL_RE = re.compile(r"sell\s+" + _NUMBER + r"\s*([a-z]+)\s+(?:for|into)\s+([a-z]+)")
_B58 = "1-9A-HJ-NP-Za-km-z"
ADDRESS_RE = re.compile(rf"(?<![{_B58}])([{_B58}]{{32,44}})(?![{_B58}])")
RECIPIENT_NAME_RE = re.compile(r"\bto\s+@?(\w+)")


@dataclass(frozen=True)
class ParsedIntent:
    action: str
    confidence: float
    params: dict[str, Any] = field(default_factory=dict)
    original_text: str = ""
    clarification_needed: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "action": self.action,
            "confidence": self.confidence,
            "params": dict(self.params),
            "originalText": self.original_text,
        }
        if self.clarification_needed:
            payload["clarificationNeeded"] = self.clarification_needed
        return payload


def _classify(lower: str) -> tuple[str, float]:
    for action, keywords, confidence in ACTION_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return action, confidence
    return "unknown", 0.0


def _set_token(params: dict[str, Any], key: str, raw: str | None) -> None:
    if not raw:
        return
    symbol = normalize_token(raw)
    if symbol:
        params[key] = symbol


def _clarification_for(action: str, params: dict[str, Any]) -> str | None:
    if action == "swap":
        if not params.get("inputToken"):
            return "Which token do you want to swap FROM?"
        if not params.get("outputToken"):
            return "Which token do you want to swap TO?"
        if not params.get("amount"):
            return "How much do you want to swap?"
    elif action == "transfer":
        if not params.get("recipient") and not params.get("recipientName"):
            return "Who do you want to send to?"
        if not params.get("amount"):
            return "How much do you want to send?"
    return None


def parse_intent(text: str) -> ParsedIntent:
    """Parse free text into a `ParsedIntent`. Never raises for odd input."""
    original = text if isinstance(text, str) else ""
    stripped = original.strip()
    lower = stripped.lower()
    words = lower.split()

    action, confidence = _classify(lower)
    if action == "unknown":
        return ParsedIntent(action="unknown", confidence=0.0, params={}, original_text=original)

    params: dict[str, Any] = {}

    amount_match = AMOUNT_RE.search(lower)
    if amount_match:
        params["amount"] = float(amount_match.group(1))
        _set_token(params, "inputToken", amount_match.group(2))

    if action == "swap":
        target_match = SWAP_TARGET_RE.search(lower)
        if target_match:
            _set_token(params, "outputToken", target_match.group(1))
            confidence += 0.1

        buy_match = BUY_RE.search(lower)
        if buy_match:
            _set_token(params, "outputToken", buy_match.group(1))
            params["amount"] = float(buy_match.group(2))
            _set_token(params, "inputToken", buy_match.group(3))
            confidence = 0.9

        sell_match = SELL_RE.search(lower)
        if sell_match:
            params["amount"] = float(sell_match.group(1))
            _set_token(params, "inputToken", sell_match.group(2))
            _set_token(params, "outputToken", sell_match.group(3))
            confidence = 0.9

    elif action == "transfer":
        # Base58 is case-sensitive, so the address is taken from the original casing.
        address_match = ADDRESS_RE.search(stripped)
        if address_match:
            params["recipient"] = address_match.group(1)
            confidence += 0.1
        else:
            name_match = RECIPIENT_NAME_RE.search(lower)
            if name_match:
                params["recipientName"] = name_match.group(1)

    elif action == "price":
        for word in words:
            symbol = normalize_token(word)
            if symbol:
                params["token"] = symbol
                break

    return ParsedIntent(
        action=action,
        confidence=round(min(max(confidence, 0.0), 1.0), 2),
        params=params,
        original_text=original,
        clarification_needed=_clarification_for(action, params),
    )


def _amount_text(value: Any) -> str:
    if value is None or value == "":
        return "?"
    try:
        text = format(Decimal(str(value)), "f")
    except InvalidOperation:
        return str(value)
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def describe_intent(intent: ParsedIntent) -> str:
    params = intent.params
    if intent.action == "swap":
        if params.get("inputToken") and params.get("outputToken") and params.get("amount"):
            return (
                f"Swap {_amount_text(params['amount'])} {params['inputToken']} for {params['outputToken']} "
                f"({intent.confidence * 100:.0f}% confident)"
            )
        return f"Swap tokens (incomplete: {intent.clarification_needed})"
    if intent.action == "transfer":
        recipient = params.get("recipient") or params.get("recipientName") or "unknown"
        amount = _amount_text(params["amount"]) if params.get("amount") else "?"
        return f"Send {amount} {params.get('inputToken') or 'tokens'} to {recipient}"
    if intent.action == "balance":
        suffix = f" for {params['token']}" if params.get("token") else ""
        return f"Check wallet balance{suffix}"
    if intent.action == "price":
        return f"Get price for {params.get('token') or 'token'}"
    if intent.action == "stake":
        amount = _amount_text(params["amount"]) if params.get("amount") else "?"
        return f"Stake {amount} {params.get('inputToken') or 'tokens'}"
    return f'Unknown action: "{intent.original_text}"'


def is_intent_complete(intent: ParsedIntent) -> bool:
    return not intent.clarification_needed and intent.confidence >= COMPLETE_CONFIDENCE_THRESHOLD


def intent_to_params(intent: ParsedIntent) -> dict[str, Any] | None:
    """Map a complete intent onto the parameter shape its executor expects."""
    if not is_intent_complete(intent):
        return None
    params = intent.params
    if intent.action == "swap":
        return {
            "inputMint": params.get("inputToken"),
            "outputMint": params.get("outputToken"),
            "amount": params.get("amount"),
            "slippageBps": DEFAULT_SLIPPAGE_BPS,
        }
    if intent.action == "transfer":
        return {
            "recipient": params.get("recipient"),
            "amount": params.get("amount"),
            "token": params.get("inputToken") or DEFAULT_TRANSFER_TOKEN,
        }
    if intent.action == "price":
        return {"token": params.get("token")}
    return dict(params)
