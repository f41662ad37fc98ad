# -*- coding: utf-8 -*-
"""Location: ./wpgateway/errors.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Gateway error taxonomy.

Every failure that can leave the gateway is represented by exactly one
``GatewayError`` subclass. Each subclass carries its JSON-RPC error code, a
caller-safe message, optional structured ``data`` and the HTTP status the
router uses for it. The categories are never conflated:

- client errors (malformed envelope, bad arguments) - fixable by the caller
- authentication errors - terminal, the caller needs a new credential (401)
- quota errors (rate limit, monthly quota) - transient, retry later (429)
- integrity errors (credential decryption) - fatal, alert-worthy
- upstream errors (origin failure or timeout)
- internal errors

Examples:
    >>> err = RateLimitedError(limit=10, remaining=0, reset_at=120, retry_after=7)
    >>> err.code, err.http_status, err.category
    (-32012, 429, 'quota')
    >>> err.to_dict()["data"]["retry_after"]
    7
    >>> InternalError().to_dict()
    {'code': -32603, 'message': 'Internal error'}
"""

# Standard
from typing import Any, Dict, Optional


class ErrorCodes:
    """JSON-RPC error codes used by the gateway."""

    # JSON-RPC 2.0
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Gateway specific
    NO_CREDENTIALS = -32001
    INVALID_KEY_FORMAT = -32002
    UPSTREAM_ERROR = -32003
    TOOL_NOT_FOUND = -32004
    INVALID_API_KEY = -32006
    REVOKED_KEY = -32007
    EXPIRED_KEY = -32008
    ACCOUNT_INACTIVE = -32009
    CONNECTION_INACTIVE = -32010
    QUOTA_EXCEEDED = -32011
    RATE_LIMITED = -32012
    DECRYPTION_ERROR = -32013
    UPSTREAM_TIMEOUT = -32014
    GATEWAY_TIMEOUT = -32015


class GatewayError(Exception):
    """Base class for every error surfaced to gateway callers.

    Attributes:
        code: JSON-RPC error code.
        message: Caller-safe message.
        data: Optional structured detail.
        category: Taxonomy bucket.
        http_status: Transport status used by the HTTP router.
    """

    code: int = ErrorCodes.INTERNAL_ERROR
    default_message: str = "Internal error"
    category: str = "internal"
    http_status: int = 200

    def __init__(self, message: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Create the error.

        Args:
            message: Overrides the class default message.
            data: Structured detail returned to the caller.
        """
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Render the JSON-RPC error object.

        Returns:
            Dict[str, Any]: ``{code, message}`` plus ``data`` when present.
        """
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data:
            error["data"] = self.data
        return error


# --------------------------------------------------------------------------- #
# Client / protocol errors                                                    #
# --------------------------------------------------------------------------- #
class ClientError(GatewayError):
    """Caller-fixable input error. Never retried server side."""

    category = "client"


class ParseError(ClientError):
    """Request body is not valid JSON."""

    code = ErrorCodes.PARSE_ERROR
    default_message = "Parse error"


class InvalidRequestError(ClientError):
    """Envelope is not a valid JSON-RPC 2.0 request."""

    code = ErrorCodes.INVALID_REQUEST
    default_message = "Invalid Request"


class MethodNotFoundError(ClientError):
    """Unknown JSON-RPC method."""

    code = ErrorCodes.METHOD_NOT_FOUND
    default_message = "Method not found"


class InvalidParamsError(ClientError):
    """Method parameters or tool arguments failed validation."""

    code = ErrorCodes.INVALID_PARAMS
    default_message = "Invalid params"


class ToolNotFoundError(ClientError):
    """``tools/call`` named a tool that is not registered."""

    code = ErrorCodes.TOOL_NOT_FOUND
    default_message = "Tool not found"


# --------------------------------------------------------------------------- #
# Authentication / authorization rejections                                   #
# --------------------------------------------------------------------------- #
class AuthRejectedError(GatewayError):
    """Base for every rejection raised by the auth resolver.

    ``reason`` is a stable machine-readable tag used for logging and metrics.
    ``tenant_id`` and ``api_key_id`` are populated once they are known so the
    usage recorder can attribute rejected calls; they are never sent to the
    caller.
    """

    reason: str = "rejected"
    category = "authentication"
    http_status = 401

    def __init__(self, message: Optional[str] = None, data: Optional[Dict[str, Any]] = None, tenant_id: Optional[str] = None, api_key_id: Optional[str] = None):
        """Create the rejection.

        Args:
            message: Overrides the class default message.
            data: Structured detail returned to the caller.
            tenant_id: Resolved tenant, if any.
            api_key_id: Resolved api key id, if any.
        """
        super().__init__(message, data)
        self.tenant_id = tenant_id
        self.api_key_id = api_key_id


class NoCredentialsError(AuthRejectedError):
    """No bearer credential was presented."""

    code = ErrorCodes.NO_CREDENTIALS
    reason = "no_credentials"
    default_message = "API key required. Use 'Authorization: Bearer <key>' or the X-API-Key header."


class InvalidKeyFormatError(AuthRejectedError):
    """Credential does not have the API key shape."""

    code = ErrorCodes.INVALID_KEY_FORMAT
    reason = "invalid_key_format"
    default_message = "Invalid API key format"


class InvalidApiKeyError(AuthRejectedError):
    """Well-formed key that matches no stored hash."""

    code = ErrorCodes.INVALID_API_KEY
    reason = "invalid_api_key"
    default_message = "Invalid API key"


class RevokedKeyError(AuthRejectedError):
    """Key exists but was revoked."""

    code = ErrorCodes.REVOKED_KEY
    reason = "revoked_key"
    default_message = "API key has been revoked"


class ExpiredKeyError(AuthRejectedError):
    """Key exists but is past its expiry."""

    code = ErrorCodes.EXPIRED_KEY
    reason = "expired_key"
    default_message = "API key has expired"


class AccountInactiveError(AuthRejectedError):
    """Owning tenant is missing, suspended or deleted."""

    code = ErrorCodes.ACCOUNT_INACTIVE
    reason = "account_inactive"
    default_message = "Account is suspended or deleted"


class ConnectionInactiveError(AuthRejectedError):
    """Connection bound to the key is missing or not active."""

    code = ErrorCodes.CONNECTION_INACTIVE
    reason = "connection_inactive"
    default_message = "WordPress connection is inactive or deleted"


class QuotaExceededError(AuthRejectedError):
    """Monthly plan quota is used up. ``data`` carries used/limit/retry_after."""

    code = ErrorCodes.QUOTA_EXCEEDED
    reason = "quota_exceeded"
    category = "quota"
    http_status = 429
    default_message = "Monthly request limit exceeded"

    def __init__(self, used: int, limit: int, plan: str, retry_after: int, reset_at: int, **kwargs: Any):
        """Create the rejection with its numeric context.

        Args:
            used: Calls counted in the current period.
            limit: Plan ceiling.
            plan: Plan id.
            retry_after: Seconds until the next period.
            reset_at: Unix time the period resets.
            **kwargs: Passed to :class:`AuthRejectedError`.
        """
        super().__init__(data={"used": used, "limit": limit, "plan": plan, "retry_after": retry_after, "reset_at": reset_at}, **kwargs)
        self.retry_after = retry_after


class RateLimitedError(AuthRejectedError):
    """Per-minute rate limit hit. ``data`` carries limit/remaining/retry_after."""

    code = ErrorCodes.RATE_LIMITED
    reason = "rate_limited"
    category = "quota"
    http_status = 429
    default_message = "Rate limit exceeded"

    def __init__(self, limit: int, remaining: int, reset_at: int, retry_after: int, **kwargs: Any):
        """Create the rejection with its numeric context.

        Args:
            limit: Calls allowed per window.
            remaining: Calls left in the window.
            reset_at: Unix time the window resets.
            retry_after: Seconds until the caller may retry.
            **kwargs: Passed to :class:`AuthRejectedError`.
        """
        super().__init__(data={"limit": limit, "remaining": remaining, "reset_at": reset_at, "retry_after": retry_after}, **kwargs)
        self.retry_after = retry_after


class CredentialDecryptionError(AuthRejectedError):
    """Stored connection secrets could not be decrypted. Fatal, never retried."""

    code = ErrorCodes.DECRYPTION_ERROR
    reason = "decryption_error"
    category = "integrity"
    http_status = 200
    default_message = "Failed to decrypt stored WordPress credentials"


# --------------------------------------------------------------------------- #
# Upstream / internal                                                         #
# --------------------------------------------------------------------------- #
class UpstreamError(GatewayError):
    """The origin WordPress site failed or returned an error."""

    code = ErrorCodes.UPSTREAM_ERROR
    category = "upstream"
    default_message = "WordPress API error"


class UpstreamTimeoutError(UpstreamError):
    """The origin WordPress site did not answer within the upstream timeout."""

    code = ErrorCodes.UPSTREAM_TIMEOUT
    default_message = "WordPress site did not respond in time"


class InternalError(GatewayError):
    """Unexpected gateway failure. The message never includes exception text."""


class GatewayTimeoutError(GatewayError):
    """The gateway's own per-request budget was exhausted."""

    code = ErrorCodes.GATEWAY_TIMEOUT
    default_message = "Gateway request budget exceeded"
