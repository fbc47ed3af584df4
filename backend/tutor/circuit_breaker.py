"""Circuit breaker guarding calls to the language model."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class BreakerState:
	is_open: bool = False
	failure_count: int = 0
	last_failure_at: Optional[float] = None

	def reset(self) -> None:
		self.is_open = False
		self.failure_count = 0
		self.last_failure_at = None


class CircuitBreaker:
	"""Opens after ``failure_threshold`` net failures, closes lazily.

	Closing only happens inside :meth:`is_open`, once ``reset_timeout_seconds``
	have passed since the last failure. There is no background timer.
	Closing clears the failure count, so the first success after recovery
	finds it already at 0 and leaves it there.
	"""

	def __init__(
		self,
		failure_threshold: int = 5,
		reset_timeout_seconds: float = 30.0,
		*,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		if failure_threshold <= 0:
			raise ValueError("failure_threshold must be positive")
		self.failure_threshold = failure_threshold
		self.reset_timeout_seconds = reset_timeout_seconds
		self._clock = clock
		self._state = BreakerState()
		self._lock = threading.Lock()

	def is_open(self) -> bool:
		with self._lock:
			self._expire_locked(self._clock())
			return self._state.is_open

	def record_failure(self) -> None:
		with self._lock:
			state = self._state
			state.failure_count += 1
			state.last_failure_at = self._clock()
			if not state.is_open and state.failure_count >= self.failure_threshold:
				state.is_open = True
				logger.warning(
					"circuit breaker opened after %d failures; cooling down for %.0fs",
					state.failure_count, self.reset_timeout_seconds,
				)

	def record_success(self) -> None:
		with self._lock:
			self._state.failure_count = max(0, self._state.failure_count - 1)

	def retry_after_seconds(self) -> int:
		"""Seconds until the breaker may close, 0 when it is closed.

		Open-ness and delay come from a single clock reading, so a positive
		value doubles as the "is open" decision.
		"""
		with self._lock:
			now = self._clock()
			self._expire_locked(now)
			state = self._state
			if not state.is_open or state.last_failure_at is None:
				return 0
			return max(1, math.ceil(state.last_failure_at + self.reset_timeout_seconds - now))

	def snapshot(self) -> BreakerState:
		with self._lock:
			s = self._state
			return BreakerState(s.is_open, s.failure_count, s.last_failure_at)

	@property
	def failure_count(self) -> int:
		with self._lock:
			return self._state.failure_count

	def _expire_locked(self, now: float) -> None:
		state = self._state
		if not state.is_open or state.last_failure_at is None:
			return
		if now - state.last_failure_at >= self.reset_timeout_seconds:
			state.reset()
			logger.info("circuit breaker closed after cooldown")
