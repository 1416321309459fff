from datetime import timedelta

import pytest

from univai_mcp.config import GatewayConfig, WalletConfig
from univai_mcp.errors import (
    ConfigurationError,
    TokenExpiredError,
    TokenFormatError,
    TokenPayloadMismatchError,
    TokenSignatureMismatchError,
)
from univai_mcp.tokens import (
    ConfirmationPayload,
    compute_payload_hash,
    generate_confirmation_token,
    verify_confirmation_token,
    verify_for_config,
)

from conftest import FIXED_NOW, SECRET

PAYLOAD = ConfirmationPayload(from_wallet="WalletA", to_wallet="WalletB", amount_sol=1.0)
TTL = 600


def test_token_shape():
    token = generate_confirmation_token(SECRET, PAYLOAD, FIXED_NOW)
    timestamp, payload_hash, signature = token.split(".")
    assert timestamp == str(int(FIXED_NOW.timestamp()))
    assert payload_hash == compute_payload_hash(PAYLOAD)
    assert len(signature) == 64
    assert len(token) >= 32


def test_verify_within_ttl_window():
    token = generate_confirmation_token(SECRET, PAYLOAD, FIXED_NOW)
    verify_confirmation_token(SECRET, token, PAYLOAD, FIXED_NOW, TTL)
    verify_confirmation_token(SECRET, token, PAYLOAD, FIXED_NOW + timedelta(seconds=TTL), TTL)


def test_verify_after_ttl_fails():
    token = generate_confirmation_token(SECRET, PAYLOAD, FIXED_NOW)
    with pytest.raises(TokenExpiredError, match="expired"):
        verify_confirmation_token(SECRET, token, PAYLOAD, FIXED_NOW + timedelta(seconds=TTL + 1), TTL)


def test_future_timestamp_is_accepted():
    token = generate_confirmation_token(SECRET, PAYLOAD, FIXED_NOW + timedelta(hours=1))
    verify_confirmation_token(SECRET, token, PAYLOAD, FIXED_NOW, TTL)


@pytest.mark.parametrize(
    "other",
    [
        ConfirmationPayload("WalletA", "WalletC", 1.0),
        ConfirmationPayload("WalletA", "WalletB", 1.5),
        ConfirmationPayload("WalletA", "WalletB", 1.0, memo="rent"),
    ],
)
def test_token_bound_to_payload(other):
    token = generate_confirmation_token(SECRET, PAYLOAD, FIXED_NOW)
    with pytest.raises(TokenPayloadMismatchError):
        verify_confirmation_token(SECRET, token, other, FIXED_NOW, TTL)


def test_wrong_secret_is_signature_mismatch():
    token = generate_confirmation_token("another-secret", PAYLOAD, FIXED_NOW)
    with pytest.raises(TokenSignatureMismatchError):
        verify_confirmation_token(SECRET, token, PAYLOAD, FIXED_NOW, TTL)


def test_tampered_timestamp_is_signature_mismatch():
    token = generate_confirmation_token(SECRET, PAYLOAD, FIXED_NOW)
    timestamp, payload_hash, signature = token.split(".")
    forged = f"{int(timestamp) + 1}.{payload_hash}.{signature}"
    with pytest.raises(TokenSignatureMismatchError):
        verify_confirmation_token(SECRET, forged, PAYLOAD, FIXED_NOW, TTL)


@pytest.mark.parametrize("token", ["", "a.b", "a.b.c.d", "x" * 40])
def test_malformed_tokens(token):
    with pytest.raises(TokenFormatError, match="format"):
        verify_confirmation_token(SECRET, token, PAYLOAD, FIXED_NOW, TTL)


@pytest.mark.parametrize("timestamp", ["abc", "", "1e9", "+5", "\u0661\u0667\u0660\u0660", "\uff11\uff12"])
def test_non_integer_timestamp(timestamp):
    payload_hash = compute_payload_hash(PAYLOAD)
    with pytest.raises(TokenFormatError, match="timestamp"):
        verify_confirmation_token(SECRET, f"{timestamp}.{payload_hash}.sig", PAYLOAD, FIXED_NOW, TTL)


def test_canonical_json_matches_browser_serialization():
    assert PAYLOAD.canonical_json() == '{"fromWallet":"WalletA","toWallet":"WalletB","amountSol":1}'
    with_memo = ConfirmationPayload("A", "B", 0.25, memo="hi")
    assert with_memo.canonical_json() == '{"fromWallet":"A","toWallet":"B","amountSol":0.25,"memo":"hi"}'


@pytest.mark.parametrize(
    "amount, expected",
    [
        (0.00005, "0.00005"),
        (0.000001, "0.000001"),
        (1e-7, "1e-7"),
        (1.5e-7, "1.5e-7"),
        (1.5, "1.5"),
        (10.0, "10"),
        (123.456, "123.456"),
        (1e20, "100000000000000000000"),
        (1e21, "1e+21"),
        (2.5e22, "2.5e+22"),
        (-0.00005, "-0.00005"),
    ],
)
def test_amount_formatting_matches_javascript(amount, expected):
    payload = ConfirmationPayload("A", "B", amount)
    assert payload.canonical_json() == f'{{"fromWallet":"A","toWallet":"B","amountSol":{expected}}}'


def test_canonical_json_escapes_strings_like_javascript():
    payload = ConfirmationPayload("A\"1", "B\n", 1, memo="caf\u00e9 \u2603")
    assert payload.canonical_json() == '{"fromWallet":"A\\"1","toWallet":"B\\n","amountSol":1,"memo":"caf\u00e9 \u2603"}'


def test_integral_float_and_int_hash_identically():
    assert compute_payload_hash(PAYLOAD) == compute_payload_hash(ConfirmationPayload("WalletA", "WalletB", 1))


def test_from_input_reads_request_fields():
    payload = ConfirmationPayload.from_input(
        {"fromWallet": "A", "toWallet": "B", "amountSol": 2, "memo": "m", "idempotencyKey": "ignored"}
    )
    assert payload == ConfirmationPayload("A", "B", 2, "m")


class RecordingLogger:
    def __init__(self):
        self.warnings = []

    def warning(self, msg, *args, **kwargs):
        self.warnings.append(msg % args if args else msg)


def test_verify_for_config_skips_without_secret_in_mock_mode():
    log = RecordingLogger()
    config = GatewayConfig(mode="mock")
    assert verify_for_config(config, "anything", PAYLOAD, FIXED_NOW, logger=log) is False
    assert len(log.warnings) == 1


def test_verify_for_config_requires_secret_in_live_mode():
    config = GatewayConfig(mode="live", bearer_token="t")
    with pytest.raises(ConfigurationError):
        verify_for_config(config, "anything", PAYLOAD, FIXED_NOW)


def test_verify_for_config_checks_token_when_secret_present():
    config = GatewayConfig(mode="mock", wallet=WalletConfig(confirmation_secret=SECRET))
    token = generate_confirmation_token(SECRET, PAYLOAD, FIXED_NOW)
    assert verify_for_config(config, token, PAYLOAD, FIXED_NOW) is True
    with pytest.raises(TokenFormatError):
        verify_for_config(config, "bogus", PAYLOAD, FIXED_NOW)
