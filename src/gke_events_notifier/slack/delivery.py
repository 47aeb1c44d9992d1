"""
Slack webhook delivery with bounded retries.

Each delivery sequence walks a small state machine:
ATTEMPTING -> (SUCCEEDED | BACKING_OFF -> ATTEMPTING ... | EXHAUSTED | CANCELLED).
Backoff waits and in-flight requests are raced against a cancellation event.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

import aiohttp
import structlog

from ..errors import DeliveryCancelledError, PermanentDeliveryError, TransientDeliveryError
from .payload import SlackRequestBody

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Slack answers a successful webhook call with this exact body. Any change on
# Slack's side (case, trailing newline) turns every delivery into a failure.
SLACK_OK_BODY = "ok"


class DeliveryState(str, Enum):
    """State of a delivery sequence."""

    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass
class DeliveryAttempt:
    """Record of a single delivery attempt."""

    attempt_number: int
    timestamp: float
    status_code: Optional[int] = None
    response_time_ms: float = 0.0
    error: Optional[str] = None
    response_body: Optional[str] = None


@dataclass
class DeliveryResult:
    """Result of a delivery sequence including all attempts."""

    url: str
    state: DeliveryState = DeliveryState.ATTEMPTING
    attempts: List[DeliveryAttempt] = field(default_factory=list)
    total_duration_ms: float = 0.0
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None

    @property
    def attempt_count(self) -> int:
        """Number of delivery attempts."""
        return len(self.attempts)

    @property
    def is_successful(self) -> bool:
        """Whether delivery was successful."""
        return self.state == DeliveryState.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "state": self.state.value,
            "attempt_count": self.attempt_count,
            "total_duration_ms": self.total_duration_ms,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "attempts": [
                {
                    "attempt_number": attempt.attempt_number,
                    "timestamp": attempt.timestamp,
                    "status_code": attempt.status_code,
                    "response_time_ms": attempt.response_time_ms,
                    "error": attempt.error,
                    "response_body": attempt.response_body[:500] if attempt.response_body else None,
                }
                for attempt in self.attempts
            ],
        }


class _Cancelled(Exception):
    """The cancellation event fired before the awaited operation finished."""


class SlackDelivery:
    """
    Slack delivery engine with retry logic and exponential backoff.

    One instance is shared by all concurrent requests; it owns the pooled
    HTTP session and holds no per-request state.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_seconds: float = 1.0,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize Slack delivery engine.

        Args:
            max_attempts: Maximum number of attempts, including the first
            base_delay_seconds: Backoff before the first retry, doubled after each retry
            timeout_seconds: Per-attempt HTTP request timeout
        """
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None

    def backoff_delay(self, attempt_number: int) -> float:
        """Delay after a failed attempt before the next one."""
        return self.base_delay_seconds * (2 ** (attempt_number - 1))

    async def deliver(
        self,
        url: str,
        payload: SlackRequestBody,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeliveryResult:
        """
        Deliver a payload to the Slack webhook with retries.

        Args:
            url: Slack webhook URL
            payload: Notification to send
            cancel_event: Aborts backoff waits and in-flight attempts when set

        Returns:
            Delivery result with attempt history

        Raises:
            DeliveryCancelledError: If the cancellation event fired
            PermanentDeliveryError: If every attempt failed
        """
        body = payload.to_json()
        result = DeliveryResult(url=url)
        start_time = time.time()
        last_error: Optional[TransientDeliveryError] = None

        while result.state == DeliveryState.ATTEMPTING:
            attempt = DeliveryAttempt(
                attempt_number=result.attempt_count + 1,
                timestamp=time.time(),
            )
            result.attempts.append(attempt)

            try:
                await self._attempt(url, body, attempt, cancel_event)
            except _Cancelled:
                attempt.error = "cancelled"
                result.state = DeliveryState.CANCELLED
                break
            except TransientDeliveryError as e:
                attempt.error = e.message
                last_error = e
            else:
                result.state = DeliveryState.SUCCEEDED
                break

            if attempt.attempt_number >= self.max_attempts:
                result.state = DeliveryState.EXHAUSTED
                break

            backoff_delay = self.backoff_delay(attempt.attempt_number)
            logger.warning(
                "Slack send failed, retrying",
                attempt=attempt.attempt_number,
                error=attempt.error,
                next_attempt_in_seconds=backoff_delay,
            )

            result.state = DeliveryState.BACKING_OFF
            if await self._wait_backoff(backoff_delay, cancel_event):
                result.state = DeliveryState.CANCELLED
                break
            result.state = DeliveryState.ATTEMPTING

        result.completed_at = time.time()
        result.total_duration_ms = (result.completed_at - start_time) * 1000

        logger.debug("Slack delivery completed", **result.to_dict())

        if result.state == DeliveryState.CANCELLED:
            raise DeliveryCancelledError(
                attempts=result.attempt_count,
                last_error=last_error,
                history=result.attempts,
            )

        if result.state == DeliveryState.EXHAUSTED:
            raise PermanentDeliveryError(
                f"Failed to send Slack notification after {result.attempt_count} attempts: "
                f"{last_error}",
                attempts=result.attempt_count,
                last_error=last_error,
                history=result.attempts,
            ) from last_error

        return result

    async def _attempt(
        self,
        url: str,
        body: bytes,
        attempt: DeliveryAttempt,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        """Perform one POST and classify the outcome."""
        attempt_start = time.time()
        try:
            status_code, response_body = await self._race(self._post(url, body), cancel_event)
        except asyncio.TimeoutError as e:
            raise TransientDeliveryError("Request timeout") from e
        except aiohttp.ClientError as e:
            raise TransientDeliveryError(f"Request failed: {e}") from e
        finally:
            attempt.response_time_ms = (time.time() - attempt_start) * 1000

        attempt.status_code = status_code
        attempt.response_body = response_body[:1000]  # Truncate long responses

        if status_code != 200:
            raise TransientDeliveryError(
                f"non-200 status returned from Slack: {status_code}",
                status_code=status_code,
                response_body=response_body,
            )

        if response_body != SLACK_OK_BODY:
            raise TransientDeliveryError(
                f"non-ok response returned from Slack: {response_body}",
                status_code=status_code,
                response_body=response_body,
            )

    async def _post(self, url: str, body: bytes) -> Tuple[int, str]:
        """POST the serialized payload and read the response."""
        session = self._get_session()
        async with session.post(
            url,
            data=body,
            headers={"Content-Type": "application/json"},
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        ) as response:
            # Proxies in front of Slack may answer with non-UTF-8 error pages
            response_body = await response.read()
            return response.status, response_body.decode("utf-8", errors="replace")

    async def _race(self, aw: Awaitable[T], cancel_event: Optional[asyncio.Event]) -> T:
        """Await ``aw`` unless the cancellation event fires first."""
        if cancel_event is None:
            return await aw

        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task not in done:
            raise _Cancelled()
        return task.result()

    async def _wait_backoff(self, delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Sleep for ``delay`` seconds. Returns True if cancelled first."""
        if cancel_event is None:
            await asyncio.sleep(delay)
            return False

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def _get_session(self) -> aiohttp.ClientSession:
        """Shared HTTP session, created on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the shared HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
