"""JSON Schema validation for tool, prompt, and resource contracts."""

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from univai_mcp.errors import ValidationError


def _format_error(label: str, err: Any) -> str:
    path = ".".join(str(part) for part in err.absolute_path)
    if path:
        return f"{label}.{path}: {err.message}"
    return f"{label}: {err.message}"


def schema_errors(schema: Dict[str, Any], value: Any, label: str) -> List[str]:
    """Return every violation of ``schema`` by ``value``, ordered by field path."""
    validator = Draft202012Validator(schema)
    errors = sorted(
        validator.iter_errors(value),
        key=lambda e: [str(part) for part in e.absolute_path],
    )
    return [_format_error(label, err) for err in errors]


def assert_schema(schema: Dict[str, Any], value: Any, label: str) -> None:
    """
    Raise ValidationError when ``value`` does not conform to ``schema``.

    The message names the first violation (field path and constraint); the full
    list is kept on ``ValidationError.errors``.
    """
    errors = schema_errors(schema, value, label)
    if errors:
        raise ValidationError(errors[0], errors=errors)
