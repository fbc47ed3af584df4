"""Per-client sliding-window rate limiter.

Each client keeps the timestamps of its requests inside the trailing window.
Every call is recorded, including the ones that end up rejected, so a client
that keeps hammering an endpoint stays limited until it backs off.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
	is_rate_limited: bool
	retry_after_seconds: int
	limit: int
	remaining: int


@dataclass
class _ClientWindow:
	timestamps: Deque[float]
	touched_at: float


class SlidingWindowRateLimiter:
	"""Counts requests per client over ``window_seconds``.

	Clients are kept in an LRU map of at most ``max_clients`` entries. An entry
	untouched for ``entry_ttl_seconds`` is treated as empty on its next lookup.
	"""

	def __init__(
		self,
		max_requests: int,
		window_seconds: float = 60.0,
		*,
		max_clients: int = 1000,
		entry_ttl_seconds: Optional[float] = None,
		clock: Callable[[], float] = time.monotonic,
		name: str = "default",
	) -> None:
		if max_requests <= 0:
			raise ValueError("max_requests must be positive")
		if window_seconds <= 0:
			raise ValueError("window_seconds must be positive")
		if max_clients <= 0:
			raise ValueError("max_clients must be positive")
		self.max_requests = max_requests
		self.window_seconds = window_seconds
		self.max_clients = max_clients
		self.entry_ttl_seconds = entry_ttl_seconds or window_seconds
		self.name = name
		self._clock = clock
		self._clients: "OrderedDict[str, _ClientWindow]" = OrderedDict()
		self._lock = threading.Lock()

	def check(self, client_id: str) -> RateLimitDecision:
		now = self._clock()
		window_start = now - self.window_seconds
		with self._lock:
			entry = self._clients.pop(client_id, None)
			if entry is None or now - entry.touched_at > self.entry_ttl_seconds:
				entry = _ClientWindow(timestamps=deque(), touched_at=now)
			while entry.timestamps and entry.timestamps[0] <= window_start:
				entry.timestamps.popleft()
			entry.timestamps.append(now)
			entry.touched_at = now
			self._clients[client_id] = entry
			while len(self._clients) > self.max_clients:
				evicted, _ = self._clients.popitem(last=False)
				logger.debug("rate limiter %s evicted client %s", self.name, evicted)
			count = len(entry.timestamps)
			oldest = entry.timestamps[0]

		limited = count > self.max_requests
		retry_after = 0
		if limited:
			retry_after = max(1, math.ceil(oldest + self.window_seconds - now))
			logger.warning(
				"rate limit exceeded on %s for client=%s (%d/%d), retry in %ds",
				self.name, client_id, count, self.max_requests, retry_after,
			)
		return RateLimitDecision(
			is_rate_limited=limited,
			retry_after_seconds=retry_after,
			limit=self.max_requests,
			remaining=max(0, self.max_requests - count),
		)

	def tracked_clients(self) -> int:
		with self._lock:
			return len(self._clients)

	def __contains__(self, client_id: str) -> bool:
		with self._lock:
			return client_id in self._clients

	def reset(self) -> None:
		with self._lock:
			self._clients.clear()
