"""
Reliability Utilities.

Retry with exponential backoff for calls to unreliable collaborators
(notification transports).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, Any

logger = logging.getLogger(__name__)


class RetryExhaustedError(Exception):
    """Raised when every attempt of a retried call failed."""
    
    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


@dataclass
class RetryPolicy:
    """
    Exponential backoff policy.
    
    Attempt n (0-based) waits base_delay * 2**n seconds before the next try.
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    retry_on: Tuple[Type[Exception], ...] = (Exception,)
    
    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    label: str = "call",
) -> Any:
    """
    Await func() until it succeeds or the policy is exhausted.
    
    Raises:
        RetryExhaustedError: wrapping the last failure
    """
    sleep = sleep or asyncio.sleep
    last_error = None
    
    for attempt in range(policy.max_attempts):
        try:
            return await func()
        except policy.retry_on as e:
            last_error = e
            logger.warning(
                "%s failed (attempt %d/%d): %s",
                label, attempt + 1, policy.max_attempts, e
            )
            if attempt < policy.max_attempts - 1:
                await sleep(policy.delay_for(attempt))
    
    raise RetryExhaustedError(policy.max_attempts, last_error)
