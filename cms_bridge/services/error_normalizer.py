"""Turn platform HTTP failures into one tagged error shape."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx


class ErrorKind(str, Enum):
    NETWORK = "network"
    HTTP = "http"
    VALIDATION = "validation"


@dataclass
class NormalizedError:
    """A platform failure with the platform-specific message already extracted."""

    kind: ErrorKind
    message: str
    status_code: Optional[int] = None
    raw: Any = None

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _wordpress_message(body: Any) -> Optional[str]:
    # {"code": "rest_post_invalid_id", "message": "Invalid post ID.", "data": {"status": 404}}
    if isinstance(body, dict):
        return body.get("message")
    return None


def _drupal_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("error") or body.get("message")
    return None


def _shopify_message(body: Any) -> Optional[str]:
    # {"errors": "Not Found"} or {"errors": {"title": ["can't be blank"]}}
    if not isinstance(body, dict):
        return None
    errors = body.get("errors")
    if isinstance(errors, str):
        return errors
    if isinstance(errors, dict):
        return "; ".join(
            f"{field} {', '.join(map(str, problems)) if isinstance(problems, list) else problems}"
            for field, problems in errors.items()
        )
    if isinstance(errors, list):
        return "; ".join(str(error.get("message", error)) if isinstance(error, dict) else str(error) for error in errors)
    return body.get("message")


_MESSAGE_EXTRACTORS = {
    "wordpress": _wordpress_message,
    "drupal": _drupal_message,
    "shopify": _shopify_message,
}


def normalize_response(response: httpx.Response, platform: str) -> NormalizedError:
    """Describe a non-2xx platform response."""
    body = _json_body(response)
    extractor = _MESSAGE_EXTRACTORS.get(platform)
    message = extractor(body) if extractor else None

    if not message:
        message = f"HTTP {response.status_code}: {response.reason_phrase}"

    kind = ErrorKind.VALIDATION if response.status_code in (400, 422) else ErrorKind.HTTP
    return NormalizedError(
        kind=kind,
        message=message,
        status_code=response.status_code,
        raw=body if body is not None else response.text,
    )


def normalize_error(error: Exception, platform: str) -> NormalizedError:
    """Describe any exception raised while talking to a platform."""
    if isinstance(error, httpx.HTTPStatusError):
        return normalize_response(error.response, platform)
    if isinstance(error, httpx.TimeoutException):
        return NormalizedError(kind=ErrorKind.NETWORK, message="Request timed out", raw=error)
    if isinstance(error, httpx.RequestError):
        return NormalizedError(kind=ErrorKind.NETWORK, message=str(error) or type(error).__name__, raw=error)
    return NormalizedError(kind=ErrorKind.NETWORK, message=str(error), raw=error)
