#!/usr/bin/env python3
#
# hostsagg/filtering/executor.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Regex execution with a hard wall-clock timeout.

CPython's ``re`` cannot be interrupted mid-match and does not release the
GIL, so a thread is not enough to escape catastrophic backtracking. Matches
run in a dedicated worker process instead; on timeout the worker is killed
and a fresh one is started on the next call. At most one worker exists per
executor, so a runaway pattern costs at most one process until it is
killed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import multiprocessing
import re
import threading
import time
from collections.abc import Sequence
from multiprocessing.connection import Connection
from typing import Any

from .errors import PatternTimeoutError

_log = logging.getLogger(__name__)

__all__ = ["RegexTimeouts", "BoundedPatternExecutor", "clamp_timeout"]

_WORKER_START_TIMEOUT = 30.0  # seconds; process start is not billed to the match
_READY = "ready"


class RegexTimeouts:
	"""Timeout tiers in milliseconds."""
	SHORT = 500
	MEDIUM = 1000
	LONG = 2000
	MAXIMUM = 5000
	DEFAULT = MEDIUM


def clamp_timeout(timeout_ms: float | None) -> float:
	"""Clamp a timeout to ``(0, MAXIMUM]``; None means DEFAULT."""
	if timeout_ms is None:
		return float(RegexTimeouts.DEFAULT)
	return min(max(float(timeout_ms), 1.0), float(RegexTimeouts.MAXIMUM))


def _match_worker(conn: Connection) -> None:
	"""Worker loop: receive ``(pattern, flags, subject)``, reply ``(ok, value)``.

	A string subject yields one bool, a list of strings yields a list of bools.
	"""
	conn.send(_READY)
	while True:
		try:
			job = conn.recv()
		except (EOFError, OSError):
			return
		if job is None:
			return
		pattern, flags, subject = job
		try:
			search = re.compile(pattern, flags).search
			if isinstance(subject, str):
				matched = search(subject) is not None
			else:
				matched = [search(text) is not None for text in subject]
		except Exception as exc:
			conn.send((False, f"{type(exc).__name__}: {exc}"))
		else:
			conn.send((True, matched))


class BoundedPatternExecutor:
	"""Run regex searches in a killable worker process.

	Usage::

		executor = BoundedPatternExecutor()
		try:
			executor.test(r"^ads?\\.", "ads.example.com")
		except PatternTimeoutError:
			...
		finally:
			executor.close()

	Calls are serialized; the executor is safe to share between threads.
	"""

	def __init__(
		self,
		default_timeout_ms: float = RegexTimeouts.DEFAULT,
		*,
		mp_context: Any | None = None,
	) -> None:
		self.default_timeout_ms = clamp_timeout(default_timeout_ms)
		self._ctx = mp_context or multiprocessing.get_context()
		self._lock = threading.Lock()
		self._proc: Any | None = None
		self._conn: Connection | None = None
		self._closed = False
		self.executions = 0
		self.timeouts = 0

	# -- worker lifecycle ---------------------------------------------------

	def _ensure_worker(self) -> Connection:
		if self._proc is not None and self._proc.is_alive() and self._conn is not None:
			return self._conn
		self._discard_worker()

		parent, child = self._ctx.Pipe()
		proc = self._ctx.Process(
			target=_match_worker,
			args=(child,),
			name="hostsagg-regex-worker",
			daemon=True,
		)
		proc.start()
		child.close()
		if not parent.poll(_WORKER_START_TIMEOUT) or parent.recv() != _READY:
			parent.close()
			proc.kill()
			proc.join(1.0)
			raise RuntimeError("Regex worker process failed to start")
		self._proc, self._conn = proc, parent
		_log.debug("FILTER regex worker started pid=%s", proc.pid)
		return parent

	def _discard_worker(self) -> None:
		proc, conn = self._proc, self._conn
		self._proc = None
		self._conn = None
		if conn is not None:
			with contextlib.suppress(OSError):
				conn.close()
		if proc is not None:
			if proc.is_alive():
				proc.kill()
			proc.join(1.0)

	def close(self) -> None:
		"""Stop the worker process. The executor can not be used afterwards."""
		with self._lock:
			self._closed = True
			if self._conn is not None:
				with contextlib.suppress(OSError, BrokenPipeError):
					self._conn.send(None)
			self._discard_worker()

	def __enter__(self) -> "BoundedPatternExecutor":
		return self

	def __exit__(self, *exc_info: object) -> None:
		self.close()

	# -- execution ----------------------------------------------------------

	def _run(self, pattern: str, subject: str | list[str], timeout_ms: float | None, flags: int) -> Any:
		limit_ms = clamp_timeout(timeout_ms if timeout_ms is not None else self.default_timeout_ms)
		with self._lock:
			if self._closed:
				raise RuntimeError("BoundedPatternExecutor is closed")
			conn = self._ensure_worker()
			started = time.monotonic()
			conn.send((pattern, flags, subject))
			if not conn.poll(limit_ms / 1000.0):
				self.timeouts += 1
				self._discard_worker()
				_log.debug(
					"FILTER regex timed out after %.0fms (limit %.0fms): %r",
					(time.monotonic() - started) * 1000, limit_ms, pattern,
				)
				raise PatternTimeoutError(pattern, limit_ms)
			try:
				ok, value = conn.recv()
			except (EOFError, OSError) as exc:
				self._discard_worker()
				raise RuntimeError("Regex worker process exited unexpectedly") from exc
			self.executions += 1

		if not ok:
			raise ValueError(value)
		return value

	def test(
		self,
		pattern: str,
		text: str,
		timeout_ms: float | None = None,
		flags: int = 0,
	) -> bool:
		"""Return whether *pattern* matches anywhere in *text*.

		Raises:
			PatternTimeoutError: the match did not finish within *timeout_ms*
			ValueError: the pattern failed to compile
		"""
		return bool(self._run(pattern, text, timeout_ms, flags))

	def search_many(
		self,
		pattern: str,
		texts: Sequence[str],
		timeout_ms: float | None = None,
		flags: int = 0,
	) -> list[bool]:
		"""Match *pattern* against every text in one worker round trip.

		*timeout_ms* bounds the whole batch, so callers keep batches small.
		Raises the same errors as ``test``.
		"""
		if not texts:
			return []
		return list(self._run(pattern, list(texts), timeout_ms, flags))

	async def test_async(
		self,
		pattern: str,
		text: str,
		timeout_ms: float | None = None,
		flags: int = 0,
	) -> bool:
		"""Async wrapper; the blocking wait runs in a thread."""
		return await asyncio.to_thread(self.test, pattern, text, timeout_ms, flags)
