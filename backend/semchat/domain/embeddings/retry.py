"""Retry policy and the call-with-policy combinator.

The policy is data (attempt budget, backoff schedule, retryable predicate) so
the embedding client and tests can share a single execution loop.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


def exponential_backoff(base_ms: float = 2000.0, cap_ms: float = 15000.0) -> Callable[[int], float]:
	"""Return ``attempt -> seconds`` computing ``min(base * 2**attempt, cap)``.

	``attempt`` is the zero-based index of the attempt that just failed.
	"""

	def _delay(attempt: int) -> float:
		return min(base_ms * (2 ** attempt), cap_ms) / 1000.0

	return _delay


def _never(_: BaseException) -> bool:
	return False


@dataclass(frozen=True)
class RetryPolicy:
	max_attempts: int = 3
	backoff: Callable[[int], float] = field(default_factory=exponential_backoff)
	retryable: Callable[[BaseException], bool] = _never

	def __post_init__(self) -> None:
		if self.max_attempts < 1:
			raise ValueError("max_attempts must be >= 1")


class RetriesExhausted(Exception):
	"""Every attempt failed with a retryable error."""

	def __init__(self, attempts: int, last_error: BaseException) -> None:
		super().__init__(f"failed after {attempts} attempts: {last_error}")
		self.attempts = attempts
		self.last_error = last_error


async def call_with_policy(
	operation: Callable[[], Awaitable[T]],
	policy: RetryPolicy,
	*,
	sleep: Sleeper = asyncio.sleep,
	operation_name: str = "operation",
	on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
	"""Run ``operation`` until it succeeds or the policy gives up.

	Non-retryable errors propagate unchanged on the attempt that raised them.
	When the attempt budget runs out :class:`RetriesExhausted` is raised from
	the last error. No sleep happens after the final attempt.
	"""
	for attempt in range(policy.max_attempts):
		try:
			return await operation()
		except Exception as exc:
			if not policy.retryable(exc):
				raise
			if attempt + 1 >= policy.max_attempts:
				logger.warning(
					"%s.exhausted",
					operation_name,
					extra={"attempts": policy.max_attempts, "error": str(exc)},
				)
				raise RetriesExhausted(policy.max_attempts, exc) from exc
			delay = policy.backoff(attempt)
			if on_retry is not None:
				on_retry(attempt, exc, delay)
			logger.info(
				"%s.retry",
				operation_name,
				extra={"attempt": attempt + 1, "max_attempts": policy.max_attempts, "delay_s": delay, "error": str(exc)},
			)
			await sleep(delay)
	raise AssertionError("unreachable")  # pragma: no cover
