"""Rate limiter + circuit breaker composed in front of an upstream call."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse

from .circuit_breaker import CircuitBreaker
from .rate_limiter import SlidingWindowRateLimiter
from .upstream import ErrorKind, UpstreamResult, call_upstream

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FAILURE_MESSAGES = {
	ErrorKind.TIMEOUT: ("Upstream timeout", "The language service took too long to respond. Please try again."),
	ErrorKind.TRANSPORT: ("Upstream unavailable", "The language service could not be reached. Please try again."),
	ErrorKind.MALFORMED: ("Invalid upstream response", "The language service returned an unexpected answer. Please try again."),
}


@dataclass(frozen=True)
class GuardRejection:
	status_code: int
	error: str
	details: str
	retry_after: int
	headers: Dict[str, str] = field(default_factory=dict)

	def to_response(self, fallback: Optional[Dict[str, Any]] = None) -> JSONResponse:
		body = dict(fallback or {})
		body.update({"error": self.error, "details": self.details, "retryAfter": self.retry_after})
		return JSONResponse(body, status_code=self.status_code, headers=self.headers)


class RequestGuard:
	"""One per endpoint; the breaker is shared between guards of the same upstream."""

	def __init__(
		self,
		limiter: SlidingWindowRateLimiter,
		breaker: CircuitBreaker,
		*,
		timeout_seconds: float = 30.0,
		count_malformed_as_failure: bool = False,
	) -> None:
		self.limiter = limiter
		self.breaker = breaker
		self.timeout_seconds = timeout_seconds
		self.count_malformed_as_failure = count_malformed_as_failure

	@property
	def name(self) -> str:
		return self.limiter.name

	def admit(self, client_id: str) -> Optional[GuardRejection]:
		decision = self.limiter.check(client_id)
		if decision.is_rate_limited:
			return GuardRejection(
				status_code=429,
				error="Too many requests",
				details=f"Please try again in {decision.retry_after_seconds} seconds",
				retry_after=decision.retry_after_seconds,
				headers={
					"Retry-After": str(decision.retry_after_seconds),
					"X-RateLimit-Limit": str(decision.limit),
					"X-RateLimit-Remaining": str(decision.remaining),
				},
			)
		retry_after = self.breaker.retry_after_seconds()
		if retry_after > 0:
			logger.info("%s request from client=%s short-circuited, breaker open", self.name, client_id)
			return GuardRejection(
				status_code=503,
				error="Service temporarily unavailable",
				details=f"The language service is recovering. Please try again in {retry_after} seconds",
				retry_after=retry_after,
				headers={"Retry-After": str(retry_after)},
			)
		return None

	async def call(self, operation: Callable[[], Awaitable[T]]) -> UpstreamResult[T]:
		result = await call_upstream(operation, self.timeout_seconds, label=self.name)
		if result.ok:
			self.breaker.record_success()
		elif result.error is not ErrorKind.MALFORMED or self.count_malformed_as_failure:
			self.breaker.record_failure()
		return result


def failure_response(result: UpstreamResult[Any], fallback: Dict[str, Any]) -> JSONResponse:
	kind = result.error or ErrorKind.TRANSPORT
	error, details = _FAILURE_MESSAGES[kind]
	body = dict(fallback)
	body.update({"error": error, "details": details})
	return JSONResponse(body, status_code=kind.status_code)


def client_id_for(request: Request) -> str:
	forwarded = request.headers.get("x-forwarded-for")
	if forwarded:
		first = forwarded.split(",")[0].strip()
		if first:
			return first
	if request.client and request.client.host:
		return request.client.host
	return "unknown"
