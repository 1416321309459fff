"""
Error taxonomy for the gateway.

Tools and collaborators raise these; only the HTTP boundary renders them, as
``{"error": message, "correlationId": ...}`` with the class's status code.
"""

from __future__ import annotations

from typing import Any, List, Optional


class GatewayError(Exception):
    """Base exception for errors surfaced to gateway callers."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(GatewayError):
    """Raised when the gateway is missing configuration it cannot run without."""

    status_code = 500


class ValidationError(GatewayError):
    """Raised when a value does not conform to its declared schema."""

    status_code = 400

    def __init__(self, message: str, *, errors: Optional[List[str]] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.errors = errors or [message]


class AuthError(GatewayError):
    """Raised when a request lacks a valid bearer token."""

    status_code = 401


class RpcNotAllowedError(GatewayError):
    """Raised when a caller names an RPC or query that is not allowlisted."""

    status_code = 403


class BucketNotAllowedError(GatewayError):
    status_code = 403


class ToolNotFoundError(GatewayError):
    status_code = 404


class PromptNotFoundError(GatewayError):
    status_code = 404


class ResourceNotFoundError(GatewayError):
    status_code = 404


class AmountExceedsMaxError(GatewayError):
    """Raised when a transfer amount is above the configured ceiling."""

    status_code = 400


class TokenError(GatewayError):
    """Base class for confirmation-token failures. Callers must request a new token."""

    status_code = 400


class TokenFormatError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass


class TokenPayloadMismatchError(TokenError):
    pass


class TokenSignatureMismatchError(TokenError):
    pass


class IdempotencyConflictError(GatewayError):
    """Raised when an idempotency key is reused with a different payload."""

    status_code = 409


class SupabaseError(GatewayError):
    """Raised when the database/function collaborator fails or is unreachable."""

    status_code = 502


class TransferExecutionError(GatewayError):
    """Raised when the downstream transfer function fails. Never retried here."""

    status_code = 502


class UpstreamError(GatewayError):
    """Raised when an outbound HTTP service (embeddings, web search) fails."""

    status_code = 502
