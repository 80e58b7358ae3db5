#!/usr/bin/env python3
#
# hostsagg/lists/auto_aggregation.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Single-flight background aggregation with at most one pending re-run."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, TypedDict

from ..utils.time import isoformat_utc, utcnow

_log = logging.getLogger(__name__)

__all__ = ["CoordinatorState", "CoordinatorStatus", "AutoAggregationCoordinator"]

DEFAULT_SETTLE_DELAY = 1.0


class CoordinatorState(str, Enum):
	IDLE = "idle"
	RUNNING = "running"


class CoordinatorStatus(TypedDict):
	"""Status information for the coordinator."""
	state: str
	is_aggregating: bool
	queue_length: int  # 0 or 1; triggers while running coalesce
	auto_aggregate_enabled: bool
	run_count: int
	fail_count: int
	last_success: str | None  # ISO timestamp of last successful run
	last_attempt: str | None  # ISO timestamp of last attempt (success or failure)


class AutoAggregationCoordinator:
	"""Runs aggregation in the background whenever something changes.

	Usage::

		coordinator = AutoAggregationCoordinator(lambda: run_once(runtime, triggered_by="auto"))
		coordinator.trigger()          # from any coroutine, returns immediately
		await coordinator.wait_idle()  # e.g. in tests
		await coordinator.stop()       # on shutdown

	``trigger()`` while a run is in flight queues exactly one follow-up run;
	further triggers coalesce into it. Before the follow-up starts the
	coordinator waits ``settle_delay`` seconds, absorbing more triggers.
	Must be used from within a running event loop.
	"""

	def __init__(
		self,
		run: Callable[[], Awaitable[Any]],
		*,
		enabled: bool = True,
		settle_delay: float = DEFAULT_SETTLE_DELAY,
	) -> None:
		if settle_delay < 0:
			raise ValueError(f"settle_delay must be ≥ 0, got {settle_delay}")
		self._run = run
		self._enabled = enabled
		self.settle_delay = settle_delay
		self._state = CoordinatorState.IDLE
		self._pending = False
		self._task: asyncio.Task | None = None
		self._stopping = False
		self.run_count = 0
		self.fail_count = 0
		self.last_success: datetime | None = None
		self.last_attempt: datetime | None = None

	@property
	def state(self) -> CoordinatorState:
		return self._state

	@property
	def enabled(self) -> bool:
		return self._enabled

	def set_enabled(self, enabled: bool) -> None:
		"""Toggle auto-aggregation; a run already in flight is not interrupted."""
		self._enabled = bool(enabled)
		if not self._enabled:
			self._pending = False
		_log.info("AUTO_AGGREGATE %s", "enabled" if self._enabled else "disabled")

	def trigger(self) -> bool:
		"""Request an aggregation run. Returns False when ignored."""
		if not self._enabled or self._stopping:
			_log.debug("AUTO_AGGREGATE trigger ignored (disabled)")
			return False

		if self._state is CoordinatorState.RUNNING:
			if not self._pending:
				_log.debug("AUTO_AGGREGATE run in progress, queueing one follow-up")
			self._pending = True
			return True

		self._state = CoordinatorState.RUNNING
		self._task = asyncio.get_running_loop().create_task(self._run_loop(), name="auto-aggregation")
		return True

	async def _run_loop(self) -> None:
		try:
			while True:
				await self._execute()
				if not self._pending or self._stopping or not self._enabled:
					break
				# Leave the slot queued during the delay so more triggers coalesce
				_log.debug("AUTO_AGGREGATE waiting %.1fs before queued run", self.settle_delay)
				await asyncio.sleep(self.settle_delay)
				self._pending = False
				if self._stopping:
					break
		except asyncio.CancelledError:
			_log.debug("AUTO_AGGREGATE cancelled")
		finally:
			self._pending = False
			self._state = CoordinatorState.IDLE

	async def _execute(self) -> bool:
		"""Run one aggregation; failures are counted and logged, never raised."""
		self.last_attempt = utcnow()
		_log.info("AUTO_AGGREGATE starting run #%d", self.run_count + self.fail_count + 1)
		try:
			await self._run()
		except Exception:
			self.fail_count += 1
			_log.exception("AUTO_AGGREGATE run failed (fail #%d)", self.fail_count)
			return False
		self.run_count += 1
		self.last_success = utcnow()
		_log.info("AUTO_AGGREGATE completed (run #%d)", self.run_count)
		return True

	async def wait_idle(self) -> None:
		"""Wait until the current run and any queued follow-up have finished."""
		while self._task is not None and not self._task.done():
			await asyncio.shield(self._task)

	async def stop(self, timeout: float = 5.0) -> None:
		"""Drop any queued run and wait up to *timeout* for the current one.

		A run that does not finish in time is cancelled.
		"""
		self._stopping = True
		self._pending = False
		task = self._task
		if task is not None and not task.done():
			_log.info("AUTO_AGGREGATE waiting for running aggregation to finish")
			done, not_done = await asyncio.wait([task], timeout=timeout)
			if not_done:
				_log.warning("AUTO_AGGREGATE run did not stop gracefully, forcing cancel")
				task.cancel()
				await asyncio.gather(task, return_exceptions=True)
		self._task = None
		_log.info("AUTO_AGGREGATE stopped")

	def get_status(self) -> CoordinatorStatus:
		"""Return coordinator status (for monitoring)."""
		return {
			"state": self._state.value,
			"is_aggregating": self._state is CoordinatorState.RUNNING,
			"queue_length": 1 if self._pending else 0,
			"auto_aggregate_enabled": self._enabled,
			"run_count": self.run_count,
			"fail_count": self.fail_count,
			"last_success": isoformat_utc(self.last_success),
			"last_attempt": isoformat_utc(self.last_attempt),
		}
