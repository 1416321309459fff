"""
Storage tools: signed download URLs and uploads, limited to allowlisted buckets.

Paths are bucket-relative. Absolute paths and ``.``/``..`` segments are
rejected before anything is sent to the storage API.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from datetime import timedelta
from typing import Any, Dict
from urllib.parse import quote

from univai_mcp.config import MAX_STORAGE_EXPIRY_SECONDS, MAX_STORAGE_UPLOAD_BYTES, GatewayConfig
from univai_mcp.context import ExecutionContext, isoformat_z
from univai_mcp.errors import BucketNotAllowedError, ValidationError
from univai_mcp.registry import ToolDefinition

STORAGE_GET = "storage_get"
STORAGE_PUT = "storage_put"
MOCK_STORAGE_BASE = "https://storage.mock.local"

_BUCKET = {"type": "string", "minLength": 1, "maxLength": 63}
_PATH = {"type": "string", "minLength": 1, "maxLength": 1024}

GET_INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "storage_get.input",
    "type": "object",
    "required": ["bucket", "path"],
    "properties": {
        "bucket": _BUCKET,
        "path": _PATH,
        "expiresIn": {"type": "integer", "minimum": 1, "maximum": MAX_STORAGE_EXPIRY_SECONDS},
        "download": {"type": "boolean"},
    },
    "additionalProperties": False,
}

GET_OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "storage_get.output",
    "type": "object",
    "required": ["bucket", "path", "signedUrl", "expiresAt", "mocked"],
    "properties": {
        "bucket": {"type": "string"},
        "path": {"type": "string"},
        "signedUrl": {"type": "string"},
        "expiresAt": {"type": "string"},
        "mocked": {"type": "boolean"},
    },
    "additionalProperties": False,
}

PUT_INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "storage_put.input",
    "type": "object",
    "required": ["bucket", "path", "content"],
    "properties": {
        "bucket": _BUCKET,
        "path": _PATH,
        "content": {"type": "string"},
        "encoding": {"type": "string", "enum": ["utf-8", "base64"]},
        "contentType": {"type": "string", "minLength": 1, "maxLength": 255},
        "upsert": {"type": "boolean"},
    },
    "additionalProperties": False,
}

PUT_OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "storage_put.output",
    "type": "object",
    "required": ["bucket", "path", "size", "contentType", "status"],
    "properties": {
        "bucket": {"type": "string"},
        "path": {"type": "string"},
        "size": {"type": "integer", "minimum": 0},
        "contentType": {"type": "string"},
        "status": {"type": "string", "enum": ["stored", "mocked"]},
    },
    "additionalProperties": False,
}


def _check_bucket(config: GatewayConfig, bucket: str) -> None:
    if bucket not in config.storage_buckets:
        raise BucketNotAllowedError(f"Bucket not allowlisted: {bucket}")


def _check_path(path: str) -> None:
    segments = path.split("/")
    if path.startswith("/") or "\\" in path or any(s in ("", ".", "..") for s in segments):
        raise ValidationError(f"Invalid storage path: {path}")


def _decode_content(content: str, encoding: str) -> bytes:
    if encoding == "utf-8":
        return content.encode("utf-8")
    try:
        return base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("content is not valid base64") from None


def _mock_signed_url(bucket: str, path: str, expires_in: int) -> str:
    token = hashlib.sha256(f"{bucket}/{path}".encode("utf-8")).hexdigest()[:16]
    return f"{MOCK_STORAGE_BASE}/{quote(bucket, safe='')}/{quote(path)}?token=mock-{token}&expiresIn={expires_in}"


def build_storage_get_tool(config: GatewayConfig) -> ToolDefinition:
    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        bucket, path = data["bucket"], data["path"]
        _check_bucket(config, bucket)
        _check_path(path)
        expires_in = data.get("expiresIn") or config.storage_default_expiry_seconds
        expires_at = isoformat_z(context.now() + timedelta(seconds=expires_in))

        if config.is_mock:
            signed_url = _mock_signed_url(bucket, path, expires_in)
        else:
            signed_url = await context.supabase.create_signed_url(
                bucket, path, expires_in, download=data.get("download", False)
            )
        context.logger.info("Signed URL issued bucket=%s expires_in=%s", bucket, expires_in)
        return {
            "bucket": bucket,
            "path": path,
            "signedUrl": signed_url,
            "expiresAt": expires_at,
            "mocked": config.is_mock,
        }

    return ToolDefinition(
        name=STORAGE_GET,
        description="Create a time-limited signed URL for an object in an allowlisted bucket.",
        input_schema=GET_INPUT_SCHEMA,
        output_schema=GET_OUTPUT_SCHEMA,
        idempotent=True,
        handler=handler,
    )


def build_storage_put_tool(config: GatewayConfig) -> ToolDefinition:
    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        bucket, path = data["bucket"], data["path"]
        _check_bucket(config, bucket)
        _check_path(path)
        encoding = data.get("encoding", "utf-8")
        payload = _decode_content(data["content"], encoding)
        if len(payload) > MAX_STORAGE_UPLOAD_BYTES:
            raise ValidationError(f"Upload exceeds {MAX_STORAGE_UPLOAD_BYTES} bytes")
        default_type = "text/plain; charset=utf-8" if encoding == "utf-8" else "application/octet-stream"
        content_type = data.get("contentType") or default_type

        result = {"bucket": bucket, "path": path, "size": len(payload), "contentType": content_type}
        if config.is_mock:
            context.logger.info("Mock mode: upload to %s skipped", bucket)
            return {**result, "status": "mocked"}

        await context.supabase.upload(
            bucket, path, payload, content_type=content_type, upsert=data.get("upsert", False)
        )
        context.logger.info("Object stored bucket=%s size=%s", bucket, len(payload))
        return {**result, "status": "stored"}

    return ToolDefinition(
        name=STORAGE_PUT,
        description="Upload text or base64 content to an allowlisted bucket.",
        input_schema=PUT_INPUT_SCHEMA,
        output_schema=PUT_OUTPUT_SCHEMA,
        idempotent=False,
        handler=handler,
    )
