"""Solana JSON-RPC collaborator.

The decision core only needs two remote operations, a SOL balance lookup and a
transaction dry-run. `SolanaRpcClient` provides both over plain HTTP; tests and
callers with their own transport can pass any object satisfying `ChainRpc`.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import re
import urllib.error
import urllib.request
from typing import Any, Protocol

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_RPC_TIMEOUT_SEC = 30
DEFAULT_COMMITMENT = "confirmed"
COMMITMENT_LEVELS = {"processed", "confirmed", "finalized"}
LAMPORTS_PER_SOL = 1_000_000_000
USER_AGENT = "solclaw-agent-runtime/1.0"

B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ADDRESS_PATTERN = re.compile(r"[1-9A-HJ-NP-Za-km-z]{32,44}")


class RpcError(Exception):
    """Chain RPC call failed or returned an unusable payload."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class AddressError(ValueError):
    """Value is not a valid Solana address."""


class ChainRpc(Protocol):
    def get_balance(self, address: str) -> float:
        ...

    def simulate(self, transaction: bytes | str, fee_payer: str) -> dict[str, Any]:
        ...


def _env_timeout_sec(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    if not re.fullmatch(r"[0-9]+", raw):
        raise RpcError("invalid_config", f"{name} must be an integer number of seconds.")
    value = int(raw)
    if value < 1:
        raise RpcError("invalid_config", f"{name} must be >= 1.")
    return value


def default_rpc_url() -> str:
    return (os.environ.get("SOLCLAW_RPC_URL") or "").strip() or DEFAULT_RPC_URL


def rpc_timeout_sec() -> int:
    return _env_timeout_sec("SOLCLAW_RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC)


def rpc_commitment() -> str:
    raw = (os.environ.get("SOLCLAW_RPC_COMMITMENT") or "").strip().lower()
    if not raw:
        return DEFAULT_COMMITMENT
    if raw not in COMMITMENT_LEVELS:
        raise RpcError("invalid_config", "SOLCLAW_RPC_COMMITMENT must be one of processed, confirmed, finalized.")
    return raw


def _b58decode(value: str) -> bytes:
    number = 0
    for char in value:
        index = B58_ALPHABET.find(char)
        if index < 0:
            raise AddressError(f"Invalid base58 character {char!r}.")
        number = number * 58 + index
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    leading_zeros = len(value) - len(value.lstrip("1"))
    return b"\x00" * leading_zeros + body


def validate_address(value: Any) -> str:
    """Return the address unchanged if it encodes a 32-byte ed25519 public key."""
    if not isinstance(value, str) or not ADDRESS_PATTERN.fullmatch(value.strip()):
        raise AddressError(f"Invalid Solana address: '{value}'.")
    address = value.strip()
    raw = _b58decode(address)
    try:
        Ed25519PublicKey.from_public_bytes(raw)
    except ValueError as exc:
        raise AddressError(f"Invalid Solana address: '{address}' does not decode to a 32-byte public key.") from exc
    return address


def is_solana_address(value: Any) -> bool:
    try:
        validate_address(value)
    except AddressError:
        return False
    return True


def _encode_transaction(transaction: bytes | str) -> str:
    if isinstance(transaction, (bytes, bytearray)):
        if not transaction:
            raise RpcError("invalid_transaction", "Transaction payload is empty.")
        return base64.b64encode(bytes(transaction)).decode("ascii")
    if not isinstance(transaction, str) or not transaction.strip():
        raise RpcError("invalid_transaction", "Transaction must be raw bytes or a base64 string.")
    encoded = transaction.strip()
    try:
        base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise RpcError("invalid_transaction", "Transaction is not valid base64.") from exc
    return encoded


def _http_json_request(url: str, payload: dict[str, Any], timeout_sec: int) -> tuple[int, dict[str, Any]]:
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    request = urllib.request.Request(
        url=url, data=json.dumps(payload).encode("utf-8"), headers=headers, method="POST"
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout_sec) as response:
            body = response.read().decode("utf-8")
            parsed = json.loads(body) if body else {}
            if not isinstance(parsed, dict):
                raise RpcError("malformed_response", "RPC returned non-object JSON payload.")
            return int(response.status), parsed
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8") if exc.fp else ""
        try:
            parsed = json.loads(body) if body else {}
            if not isinstance(parsed, dict):
                parsed = {"message": body}
        except json.JSONDecodeError:
            parsed = {"message": body or str(exc)}
        return int(exc.code), parsed
    except urllib.error.URLError as exc:
        raise RpcError("rpc_unavailable", f"RPC request failed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise RpcError("rpc_timeout", f"RPC request timed out after {timeout_sec}s.") from exc
    except json.JSONDecodeError as exc:
        raise RpcError("malformed_response", "RPC returned invalid JSON.") from exc


def _validate_balance_result(result: Any) -> int:
    if not isinstance(result, dict):
        raise RpcError("malformed_response", "getBalance result must be an object.")
    lamports = result.get("value")
    if isinstance(lamports, bool) or not isinstance(lamports, int) or lamports < 0:
        raise RpcError("malformed_response", "getBalance value must be a non-negative integer.")
    return lamports


def _validate_simulation_value(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict) or not isinstance(result.get("value"), dict):
        raise RpcError("malformed_response", "simulateTransaction result must contain a value object.")
    value = result["value"]
    err = value.get("err")
    logs = value.get("logs")
    units = value.get("unitsConsumed")
    if logs is None:
        logs = []
    if not isinstance(logs, list) or not all(isinstance(line, str) for line in logs):
        raise RpcError("malformed_response", "simulateTransaction logs must be a list of strings.")
    if units is None:
        units = 0
    if isinstance(units, bool) or not isinstance(units, int) or units < 0:
        raise RpcError("malformed_response", "simulateTransaction unitsConsumed must be a non-negative integer.")
    return {"err": err, "logs": list(logs), "unitsConsumed": units}


class SolanaRpcClient:
    """Minimal JSON-RPC 2.0 client for a Solana node."""

    def __init__(self, rpc_url: str | None = None, *, timeout_sec: int | None = None, commitment: str | None = None):
        self.rpc_url = rpc_url or default_rpc_url()
        self.timeout_sec = timeout_sec or rpc_timeout_sec()
        self.commitment = commitment or rpc_commitment()
        self._request_id = 0

    def _call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        status, body = _http_json_request(self.rpc_url, payload, self.timeout_sec)
        details = {"method": method, "status": status, "rpcUrl": self.rpc_url}
        error = body.get("error")
        if error is not None:
            message = error.get("message") if isinstance(error, dict) else str(error)
            if isinstance(error, dict) and error.get("code") is not None:
                details["rpcCode"] = error.get("code")
            raise RpcError("rpc_error", f"RPC {method} failed: {message or 'unknown error'}", details)
        if status >= 400:
            raise RpcError("http_error", f"RPC {method} failed with HTTP {status}.", details)
        if "result" not in body:
            raise RpcError("malformed_response", f"RPC {method} response is missing 'result'.", details)
        return body["result"]

    def get_balance(self, address: str) -> float:
        address = validate_address(address)
        result = self._call("getBalance", [address, {"commitment": self.commitment}])
        return _validate_balance_result(result) / LAMPORTS_PER_SOL

    def simulate(self, transaction: bytes | str, fee_payer: str) -> dict[str, Any]:
        validate_address(fee_payer)
        config = {
            "encoding": "base64",
            "commitment": self.commitment,
            # The node stamps a fresh blockhash, so signatures cannot be checked.
            "replaceRecentBlockhash": True,
            "sigVerify": False,
        }
        result = self._call("simulateTransaction", [_encode_transaction(transaction), config])
        return _validate_simulation_value(result)
