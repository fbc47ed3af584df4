"""Timeout race around language-model calls and classification of the outcome."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import httpx

from .schemas import MalformedResponseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
	TIMEOUT = "timeout"
	TRANSPORT = "transport"
	MALFORMED = "malformed"

	@property
	def status_code(self) -> int:
		return 502 if self is ErrorKind.MALFORMED else 503


@dataclass(frozen=True)
class UpstreamResult(Generic[T]):
	value: Optional[T] = None
	error: Optional[ErrorKind] = None
	detail: str = ""

	@property
	def ok(self) -> bool:
		return self.error is None

	@classmethod
	def success(cls, value: T) -> "UpstreamResult[T]":
		return cls(value=value)

	@classmethod
	def failure(cls, kind: ErrorKind, detail: str = "") -> "UpstreamResult[T]":
		return cls(error=kind, detail=detail)


async def call_upstream(
	operation: Callable[[], Awaitable[T]],
	timeout_seconds: float,
	*,
	label: str = "upstream",
) -> UpstreamResult[T]:
	"""Run ``operation`` with a deadline and turn any failure into a result.

	Whichever settles first wins: the call or the timer. When the timer wins,
	the pending call is cancelled.
	"""
	try:
		value = await asyncio.wait_for(operation(), timeout=timeout_seconds)
	except asyncio.TimeoutError:
		logger.warning("%s call timed out after %.1fs", label, timeout_seconds)
		return UpstreamResult.failure(ErrorKind.TIMEOUT, f"timed out after {timeout_seconds:g}s")
	except MalformedResponseError as exc:
		logger.warning("%s returned a malformed response: %s", label, exc)
		return UpstreamResult.failure(ErrorKind.MALFORMED, str(exc))
	except (httpx.HTTPError, RuntimeError, ValueError) as exc:
		logger.error("%s call failed: %s: %s", label, type(exc).__name__, exc)
		return UpstreamResult.failure(ErrorKind.TRANSPORT, str(exc))
	return UpstreamResult.success(value)
