"""
Confirmation tokens for money-moving tools.

A token is ``"<unix timestamp>.<payload hash>.<signature>"``. The payload hash
is an HMAC-SHA256 of the canonical JSON of the transfer fields under a fixed
public salt; the signature is an HMAC-SHA256 of ``"<timestamp>.<payload hash>"``
under the server secret. Tokens are stateless: verification recomputes both
values for the request being executed and compares them in constant time, so a
token approved for one transfer cannot be replayed against another.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from univai_mcp.errors import (
    ConfigurationError,
    TokenExpiredError,
    TokenFormatError,
    TokenPayloadMismatchError,
    TokenSignatureMismatchError,
)

PAYLOAD_HASH_SALT = b"wallet-transfer-idempotency"
_TIMESTAMP_REGEX = re.compile(r"^-?[0-9]+$")


@dataclass(frozen=True, slots=True)
class ConfirmationPayload:
    """The transfer fields a caller attests to."""

    from_wallet: str
    to_wallet: str
    amount_sol: float
    memo: Optional[str] = None

    @classmethod
    def from_input(cls, data: Dict[str, Any]) -> "ConfirmationPayload":
        return cls(
            from_wallet=data["fromWallet"],
            to_wallet=data["toWallet"],
            amount_sol=data["amountSol"],
            memo=data.get("memo"),
        )

    def canonical_json(self) -> str:
        # Field order and number formatting match JSON.stringify, so tokens
        # minted by browser clients hash identically.
        fields = [
            ("fromWallet", json.dumps(self.from_wallet, ensure_ascii=False)),
            ("toWallet", json.dumps(self.to_wallet, ensure_ascii=False)),
            ("amountSol", _js_number(self.amount_sol)),
        ]
        if self.memo is not None:
            fields.append(("memo", json.dumps(self.memo, ensure_ascii=False)))
        return "{" + ",".join(f'"{key}":{value}' for key, value in fields) + "}"


def _js_number(value: float) -> str:
    """
    Format a number the way ECMAScript's Number::toString does.

    Python's ``repr`` already yields the shortest round-tripping digits; only
    the placement of the decimal point and the switch to exponent notation
    differ (JS uses plain notation for decimal exponents in [-6, 21)).
    """
    number = float(value)
    if not math.isfinite(number):
        return "null"
    if number == 0:
        return "0"
    sign = "-" if number < 0 else ""
    mantissa, _, exponent = repr(abs(number)).partition("e")
    whole, _, fraction = mantissa.partition(".")
    all_digits = whole + fraction
    significant = all_digits.lstrip("0")
    point = len(whole) + int(exponent or 0) - (len(all_digits) - len(significant))
    digits = significant.rstrip("0")
    count = len(digits)

    if count <= point <= 21:
        text = digits + "0" * (point - count)
    elif 0 < point <= 21:
        text = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        text = "0." + "0" * -point + digits
    else:
        shift = point - 1
        text = digits[0]
        if count > 1:
            text += "." + digits[1:]
        text += f"e{'+' if shift >= 0 else '-'}{abs(shift)}"
    return sign + text


def _unix_seconds(now: Optional[datetime]) -> int:
    moment = now or datetime.now(timezone.utc)
    return math.floor(moment.timestamp())


def compute_payload_hash(payload: ConfirmationPayload) -> str:
    return hmac.new(PAYLOAD_HASH_SALT, payload.canonical_json().encode("utf-8"), hashlib.sha256).hexdigest()


def _sign(secret: str, timestamp: str, payload_hash: str) -> str:
    message = f"{timestamp}.{payload_hash}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def generate_confirmation_token(
    secret: str, payload: ConfirmationPayload, now: Optional[datetime] = None
) -> str:
    timestamp = str(_unix_seconds(now))
    payload_hash = compute_payload_hash(payload)
    return f"{timestamp}.{payload_hash}.{_sign(secret, timestamp, payload_hash)}"


def verify_confirmation_token(
    secret: str,
    token: str,
    payload: ConfirmationPayload,
    now: Optional[datetime],
    ttl_seconds: int,
) -> None:
    """
    Raise a TokenError subclass unless ``token`` was minted for ``payload``
    with ``secret`` no more than ``ttl_seconds`` ago.

    Timestamps in the future are accepted; only staleness is checked.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenFormatError("Invalid confirmation token format")
    timestamp_str, payload_hash, signature = parts
    if not _TIMESTAMP_REGEX.fullmatch(timestamp_str):
        raise TokenFormatError("Invalid confirmation token timestamp")

    if _unix_seconds(now) - int(timestamp_str) > ttl_seconds:
        raise TokenExpiredError("Confirmation token expired")

    expected_hash = compute_payload_hash(payload)
    expected_signature = _sign(secret, timestamp_str, expected_hash)

    if not hmac.compare_digest(payload_hash.encode("utf-8"), expected_hash.encode("utf-8")):
        raise TokenPayloadMismatchError("Confirmation token payload mismatch")
    if not hmac.compare_digest(signature.encode("utf-8"), expected_signature.encode("utf-8")):
        raise TokenSignatureMismatchError("Confirmation token signature mismatch")


def verify_for_config(
    config: Any,
    token: str,
    payload: ConfirmationPayload,
    now: Optional[datetime],
    logger: Any = None,
) -> bool:
    """
    Apply the secret policy, then verify.

    Returns False when verification was skipped (no secret, mock mode) and True
    when the token was checked. A live gateway without a secret is a
    configuration error, never a bypass.
    """
    secret = config.wallet.confirmation_secret
    if not secret:
        if config.is_mock:
            if logger is not None:
                logger.warning("Confirmation secret not configured; skipping token check in mock mode")
            return False
        raise ConfigurationError("Wallet confirmation secret is not configured")
    verify_confirmation_token(secret, token, payload, now, config.wallet.confirmation_ttl_seconds)
    return True
