"""Custom exceptions for the CMS bridge with standardized error codes."""
from enum import Enum
from fastapi import status
from typing import Optional, Any, Sequence


class ErrorCode(str, Enum):
    """Standardized error codes for the API."""

    # Delivery queue errors (1xxx)
    QUEUE_FULL = "QUEUE_FULL"
    QUEUE_CLEARED = "QUEUE_CLEARED"

    # Signature errors (2xxx)
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"

    # Delivery errors (3xxx)
    DELIVERY_TIMEOUT = "DELIVERY_TIMEOUT"
    DELIVERY_HTTP_ERROR = "DELIVERY_HTTP_ERROR"
    DELIVERY_TRANSPORT_ERROR = "DELIVERY_TRANSPORT_ERROR"
    DELIVERY_FAILED = "DELIVERY_FAILED"

    # Validation errors (4xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Sync errors (5xxx)
    REMOTE_PLATFORM_ERROR = "REMOTE_PLATFORM_ERROR"
    PLATFORM_NOT_CONFIGURED = "PLATFORM_NOT_CONFIGURED"
    SYNC_DISABLED = "SYNC_DISABLED"

    # Server errors (9xxx)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BridgeServiceException(Exception):
    """Base exception for the bridge with standardized error format."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to standardized error response dict."""
        response = {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
            }
        }
        if self.details:
            response["error"]["details"] = self.details
        return response


class QueueFullError(BridgeServiceException):
    """Raised when a webhook is enqueued while the queue is at capacity."""

    def __init__(self, max_size: int):
        super().__init__(
            message="Webhook queue is full",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code=ErrorCode.QUEUE_FULL,
            details={"queue_max_size": max_size},
        )


class QueueClearedError(BridgeServiceException):
    """Raised on a queued job's future when the queue is cleared."""

    def __init__(self, event: str, content_id: Any):
        super().__init__(
            message="Queue cleared",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.QUEUE_CLEARED,
            details={"event": event, "content_id": content_id},
        )


class SignatureMismatchError(BridgeServiceException):
    """Raised when an inbound webhook signature does not verify."""

    def __init__(self, reason: str = "Invalid webhook signature"):
        super().__init__(
            message=reason,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=ErrorCode.SIGNATURE_MISMATCH,
        )


class DeliveryError(BridgeServiceException):
    """Base class for transient delivery failures eligible for retry."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DELIVERY_TRANSPORT_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code=error_code,
            details=details,
        )


class DeliveryTimeoutError(DeliveryError):
    """Raised when the target does not answer within the timeout."""

    def __init__(self, url: str, timeout: float):
        super().__init__(
            message=f"Timeout after {timeout}s",
            error_code=ErrorCode.DELIVERY_TIMEOUT,
            details={"url": url, "timeout_seconds": timeout},
        )


class DeliveryHttpError(DeliveryError):
    """Raised when the target answers with a non-2xx status."""

    def __init__(self, url: str, response_status: int, reason: str = ""):
        self.response_status = response_status
        message = f"HTTP {response_status}: {reason}" if reason else f"HTTP {response_status}"
        super().__init__(
            message=message,
            error_code=ErrorCode.DELIVERY_HTTP_ERROR,
            details={"url": url, "response_status": response_status},
        )


class DeliveryTransportError(DeliveryError):
    """Raised on connection-level failures (DNS, refused, reset)."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            message=reason or "Transport error",
            error_code=ErrorCode.DELIVERY_TRANSPORT_ERROR,
            details={"url": url},
        )


class WebhookDeliveryFailedError(BridgeServiceException):
    """Raised on a job's future after its retries are exhausted."""

    def __init__(self, event: str, content_id: Any, attempts: int, last_error: Exception):
        self.event = event
        self.content_id = content_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            message=(
                f"Webhook '{event}' for content '{content_id}' failed after "
                f"{attempts} attempts: {last_error}"
            ),
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code=ErrorCode.DELIVERY_FAILED,
            details={
                "event": event,
                "content_id": content_id,
                "attempts": attempts,
                "last_error": str(last_error),
            },
        )


class ValidationError(BridgeServiceException):
    """Raised when transformed content is missing required fields."""

    def __init__(self, direction: str, missing_fields: Sequence[str]):
        self.direction = direction
        self.missing_fields = list(missing_fields)
        super().__init__(
            message=(
                f"Content validation failed ({direction}): missing required "
                f"fields: {', '.join(self.missing_fields)}"
            ),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=ErrorCode.VALIDATION_ERROR,
            details={"direction": direction, "missing_fields": self.missing_fields},
        )


class RemotePlatformError(BridgeServiceException):
    """Raised when a remote platform call fails during sync."""

    def __init__(self, platform: str, normalized):
        self.platform = platform
        self.normalized = normalized
        super().__init__(
            message=f"{platform} request failed: {normalized.message}",
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code=ErrorCode.REMOTE_PLATFORM_ERROR,
            details={
                "platform": platform,
                "kind": normalized.kind.value,
                "remote_status": normalized.status_code,
            },
        )

    @property
    def remote_status(self) -> Optional[int]:
        return self.normalized.status_code


class PlatformNotConfiguredError(BridgeServiceException):
    """Raised when a sync is requested for an unknown or unconfigured platform."""

    def __init__(self, platform: str):
        super().__init__(
            message=f"Platform '{platform}' is not configured",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.PLATFORM_NOT_CONFIGURED,
            details={"platform": platform},
        )


class SyncDisabledError(BridgeServiceException):
    """Raised when the configured sync direction forbids the request."""

    def __init__(self, platform: str, sync_direction: str):
        super().__init__(
            message=f"Sync to '{platform}' disabled by sync direction '{sync_direction}'",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.SYNC_DISABLED,
            details={"platform": platform, "sync_direction": sync_direction},
        )
