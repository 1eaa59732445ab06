"""Token symbol normalization for free-form agent requests."""

from __future__ import annotations

import re
from types import MappingProxyType

TOKEN_ALIASES = MappingProxyType(
    {
        "sol": "SOL",
        "solana": "SOL",
        "usdc": "USDC",
        "usdt": "USDT",
        "tether": "USDT",
        "bonk": "BONK",
        "jup": "JUP",
        "jupiter": "JUP",
        "ray": "RAY",
        "raydium": "RAY",
        "wif": "WIF",
        "dogwifhat": "WIF",
        "jito": "JTO",
        "pyth": "PYTH",
        "orca": "ORCA",
        "msol": "mSOL",
        "marinade": "mSOL",
        "bsol": "bSOL",
        "eth": "ETH",
        "ethereum": "ETH",
        "weth": "WETH",
        "btc": "BTC",
        "bitcoin": "BTC",
        "wbtc": "WBTC",
    }
)

SPECULATIVE_SYMBOL_MIN_LEN = 2
SPECULATIVE_SYMBOL_MAX_LEN = 10


def normalize_token(value: str) -> str | None:
    """Map a token name or alias to its canonical symbol.

    Unknown names of 2-10 alphanumerics are upper-cased and returned as a
    speculative symbol; anything else is not a token.
    """
    cleaned = re.sub(r"[^a-z0-9]", "", (value or "").lower())
    alias = TOKEN_ALIASES.get(cleaned)
    if alias:
        return alias
    if SPECULATIVE_SYMBOL_MIN_LEN <= len(cleaned) <= SPECULATIVE_SYMBOL_MAX_LEN:
        return cleaned.upper()
    return None
