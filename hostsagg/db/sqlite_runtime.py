#!/usr/bin/env python3
#
# hostsagg/db/sqlite_runtime.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Connection and transaction helpers for the aggregation history database.

Timestamps are stored as ISO-8601 UTC text with a ``Z`` suffix and read back
as aware datetimes for every column declared ``timestamp``.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from ..utils.time import isoformat_utc

_log = logging.getLogger(__name__)

# Marks an update argument that was not passed (None is a real value)
UNSET: object = object()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _read_timestamp(value: bytes) -> datetime:
	text = value.decode("utf-8", errors="replace")
	try:
		parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
	except ValueError:
		_log.error("DB corrupt timestamp %r, using epoch", text)
		return _EPOCH
	if parsed.tzinfo is None:
		return parsed.replace(tzinfo=timezone.utc)
	return parsed.astimezone(timezone.utc)


# Process-global registration
sqlite3.register_adapter(datetime, isoformat_utc)
sqlite3.register_converter("timestamp", _read_timestamp)


def connect(db_path: Path, *, timeout: float = 30.0) -> sqlite3.Connection:
	"""Open the database with WAL journaling, foreign keys and ``sqlite3.Row`` rows.

	The connection may be used from worker threads (``asyncio.to_thread``);
	callers serialize access themselves.
	"""
	db_path = Path(db_path)
	db_path.parent.mkdir(parents=True, exist_ok=True)
	conn = sqlite3.connect(
		str(db_path),
		detect_types=sqlite3.PARSE_DECLTYPES,
		check_same_thread=False,
		timeout=timeout,
	)
	conn.row_factory = sqlite3.Row
	try:
		mode = conn.execute("PRAGMA journal_mode=WAL").fetchone()[0]
		conn.execute("PRAGMA foreign_keys=ON")
	except sqlite3.Error:
		conn.close()
		raise
	_log.debug("DB opened %s (journal_mode=%s)", db_path, mode)
	return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
	"""Commit on success, roll back on error.

	Only the outermost block owns the transaction; nested blocks join it.
	"""
	if conn.in_transaction:
		yield conn
		return
	conn.execute("BEGIN")
	try:
		yield conn
	except BaseException:
		if conn.in_transaction:
			conn.rollback()
		raise
	conn.commit()
