#!/usr/bin/env python3
#
# hostsagg/db/sqlite_sources.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Hosts list source CRUD operations."""

from __future__ import annotations

import sqlite3

from ..models.sources import HostsSource
from ..utils.time import utcnow
from .sqlite_runtime import UNSET, transaction


# ─────────────────────────────────────────────────────────────────────────────
# Source CRUD functions
# ─────────────────────────────────────────────────────────────────────────────


def upsert_source(conn: sqlite3.Connection, source: HostsSource) -> None:
	"""Insert a source or update its definition; fetch bookkeeping is kept."""
	now = utcnow()
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO sources (id, name, type, url, file_path, enabled, format, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
			ON CONFLICT(id) DO UPDATE SET
				name = excluded.name,
				type = excluded.type,
				url = excluded.url,
				file_path = excluded.file_path,
				enabled = excluded.enabled,
				format = excluded.format,
				updated_at = excluded.updated_at
			""",
			(
				source.id, source.name, source.type, source.url, source.file_path,
				1 if source.enabled else 0, source.format, now, now,
			),
		)


def get_source(conn: sqlite3.Connection, source_id: str) -> sqlite3.Row | None:
	"""Get a source row by id."""
	cur = conn.execute("SELECT * FROM sources WHERE id = ?", (source_id,))
	return cur.fetchone()


def list_sources(conn: sqlite3.Connection, *, enabled_only: bool = False) -> list[HostsSource]:
	"""List source definitions ordered by id."""
	if enabled_only:
		cur = conn.execute("SELECT * FROM sources WHERE enabled = 1 ORDER BY id")
	else:
		cur = conn.execute("SELECT * FROM sources ORDER BY id")
	return [
		HostsSource(
			id=row["id"],
			name=row["name"],
			type=row["type"],
			url=row["url"],
			file_path=row["file_path"],
			enabled=bool(row["enabled"]),
			format=row["format"],
		)
		for row in cur.fetchall()
	]


def set_source_enabled(conn: sqlite3.Connection, source_id: str, enabled: bool) -> bool:
	"""Enable or disable a source."""
	with transaction(conn):
		cur = conn.execute(
			"UPDATE sources SET enabled = ?, updated_at = ? WHERE id = ?",
			(1 if enabled else 0, utcnow(), source_id),
		)
		return cur.rowcount > 0


def update_fetch_status(
	conn: sqlite3.Connection,
	source_id: str,
	status: str,
	*,
	entry_count: int | object = UNSET,
	error: str | None = None,
) -> bool:
	"""Record the outcome of the latest fetch of a source."""
	now = utcnow()
	with transaction(conn):
		if entry_count is UNSET:
			cur = conn.execute(
				"""
				UPDATE sources
				SET last_fetch_status = ?, last_fetch_error = ?, last_fetched_at = ?
				WHERE id = ?
				""",
				(status, error, now, source_id),
			)
		else:
			cur = conn.execute(
				"""
				UPDATE sources
				SET last_fetch_status = ?, last_fetch_error = ?, last_fetched_at = ?, last_entry_count = ?
				WHERE id = ?
				""",
				(status, error, now, entry_count, source_id),
			)
		return cur.rowcount > 0


def delete_source(conn: sqlite3.Connection, source_id: str) -> bool:
	"""Delete a source; past aggregation rows keep their source id."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
		return cur.rowcount > 0
