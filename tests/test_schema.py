import pytest

from univai_mcp.errors import ValidationError
from univai_mcp.schema import assert_schema, schema_errors
from univai_mcp.tools.wallet_transfer import INPUT_SCHEMA

VALID_INPUT = {
    "fromWallet": "A" * 32,
    "toWallet": "B" * 32,
    "amountSol": 1.5,
    "confirmationToken": "x" * 40,
    "idempotencyKey": "k" * 24,
}


def test_valid_input_passes():
    assert_schema(INPUT_SCHEMA, VALID_INPUT, "wallet_transfer.input")


def test_missing_required_property_is_reported():
    data = dict(VALID_INPUT)
    del data["toWallet"]
    with pytest.raises(ValidationError) as excinfo:
        assert_schema(INPUT_SCHEMA, data, "wallet_transfer.input")
    assert "wallet_transfer.input" in excinfo.value.message
    assert "toWallet" in excinfo.value.message


def test_exclusive_minimum_names_field_path():
    with pytest.raises(ValidationError) as excinfo:
        assert_schema(INPUT_SCHEMA, {**VALID_INPUT, "amountSol": 0}, "wallet_transfer.input")
    assert excinfo.value.message.startswith("wallet_transfer.input.amountSol:")
    assert excinfo.value.status_code == 400


def test_short_idempotency_key_rejected():
    errors = schema_errors(INPUT_SCHEMA, {**VALID_INPUT, "idempotencyKey": "short"}, "in")
    assert len(errors) == 1
    assert errors[0].startswith("in.idempotencyKey:")


def test_unknown_property_rejected():
    with pytest.raises(ValidationError) as excinfo:
        assert_schema(INPUT_SCHEMA, {**VALID_INPUT, "extra": True}, "in")
    assert "extra" in excinfo.value.message


def test_wrong_type_and_all_errors_collected():
    data = {**VALID_INPUT, "amountSol": "1", "memo": "m" * 121}
    with pytest.raises(ValidationError) as excinfo:
        assert_schema(INPUT_SCHEMA, data, "in")
    assert len(excinfo.value.errors) == 2
    assert excinfo.value.errors[0].startswith("in.amountSol:")
    assert excinfo.value.errors[1].startswith("in.memo:")


def test_non_object_value_has_no_path():
    errors = schema_errors(INPUT_SCHEMA, "not-an-object", "in")
    assert errors == ["in: 'not-an-object' is not of type 'object'"]


def test_enum_violation():
    schema = {"type": "object", "properties": {"status": {"enum": ["a", "b"]}}}
    with pytest.raises(ValidationError):
        assert_schema(schema, {"status": "c"}, "out")
