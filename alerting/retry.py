"""
Retry Policy - Fixed backoff delivery for alerting backend writes.

Losing an alert is worse than delivering it late, so the default policy
retries forever. Tests inject a bounded policy and a no-op sleep.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp

from alerting.exceptions import AlertingError, BackendReadError, DeliveryError


logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (AlertingError, aiohttp.ClientError, asyncio.TimeoutError)


@dataclass
class RetryPolicy:
    """
    Retry with a fixed pause between attempts.

    Attributes:
        backoff_seconds: Pause between attempts
        max_attempts: None retries forever
        sleep: Awaitable sleep, replaceable in tests
    """
    backoff_seconds: float = 0.1
    max_attempts: Optional[int] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "") -> T:
        """
        Run `operation` until it succeeds.

        Raises:
            DeliveryError: If max_attempts is set and every attempt failed
            BackendReadError: If the backend accepted the call but the reply is unreadable
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except BackendReadError:
                # The call went through, only its reply is unreadable
                raise
            except RETRYABLE_ERRORS as e:
                if self.max_attempts is not None and attempt >= self.max_attempts:
                    raise DeliveryError(
                        f"{description} failed after {attempt} attempts",
                        attempts=attempt,
                        original_error=e,
                    ) from e
                logger.error(f"{description} failed (attempt {attempt}): {e}")
                await self.sleep(self.backoff_seconds)
