"""
Error types for GKE Events Notifier.

Request errors map to a client status, delivery errors propagate from the
delivery engine to the request handler, and startup errors are fatal.
"""

from typing import Any, Dict, List, Optional


class NotifierError(Exception):
    """Base exception for notifier errors."""

    def __init__(
        self, message: str, code: str = "notifier_error", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class MalformedRequestError(NotifierError):
    """Inbound request could not be read or understood (HTTP 400)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="malformed_request", details=details)


class DecodeError(MalformedRequestError):
    """Push request body is not a well-formed Pub/Sub envelope."""


class DeliveryError(NotifierError):
    """Base class for Slack delivery failures."""


class TransientDeliveryError(DeliveryError):
    """A single delivery attempt failed and may be retried."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if response_body is not None:
            details["response_body"] = response_body
        super().__init__(message, code="delivery_transient", details=details)
        self.status_code = status_code
        self.response_body = response_body


class PermanentDeliveryError(DeliveryError):
    """Delivery gave up: the attempt budget is spent or it was cancelled."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
        history: Optional[List[Any]] = None,
        code: str = "delivery_permanent",
    ):
        details: Dict[str, Any] = {"attempts": attempts}
        if last_error is not None:
            details["last_error"] = str(last_error)
        super().__init__(message, code=code, details=details)
        self.attempts = attempts
        self.last_error = last_error
        self.history = history or []


class DeliveryCancelledError(PermanentDeliveryError):
    """Delivery was aborted by the cancellation signal."""

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException] = None,
        history: Optional[List[Any]] = None,
    ):
        super().__init__(
            f"Slack notification cancelled after {attempts} attempts",
            attempts=attempts,
            last_error=last_error,
            history=history,
            code="delivery_cancelled",
        )


class StartupError(NotifierError):
    """The server could not start listening."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="startup_failed", details=details)
