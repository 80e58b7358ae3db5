#!/usr/bin/env python3
#
# hostsagg/db/sqlite_schema.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite schema initialization."""

from __future__ import annotations

import logging
import sqlite3

from .sqlite_runtime import transaction

_log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Schema Initialization
# ─────────────────────────────────────────────────────────────────────────────


def init_schema(conn: sqlite3.Connection) -> None:
	"""Create the required database schema. Safe to call repeatedly."""
	with transaction(conn):
		# Source definitions plus last fetch bookkeeping
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS sources (
				id TEXT PRIMARY KEY,
				name TEXT NOT NULL,
				type TEXT NOT NULL DEFAULT 'URL',
				url TEXT,
				file_path TEXT,
				enabled INTEGER NOT NULL DEFAULT 1,
				format TEXT NOT NULL DEFAULT 'auto',
				last_fetch_status TEXT,
				last_fetch_error TEXT,
				last_fetched_at timestamp,
				last_entry_count INTEGER NOT NULL DEFAULT 0,
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL
			)
			"""
		)

		# One row per aggregation run
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS aggregation_results (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				started_at timestamp NOT NULL,
				triggered_by TEXT NOT NULL DEFAULT 'manual',
				total_sources INTEGER NOT NULL DEFAULT 0,
				successful_sources INTEGER NOT NULL DEFAULT 0,
				failed_sources INTEGER NOT NULL DEFAULT 0,
				total_entries INTEGER NOT NULL DEFAULT 0,
				unique_entries INTEGER NOT NULL DEFAULT 0,
				allowed_entries INTEGER NOT NULL DEFAULT 0,
				duplicates_removed INTEGER NOT NULL DEFAULT 0,
				allow_excluded INTEGER NOT NULL DEFAULT 0,
				filtered_domains INTEGER NOT NULL DEFAULT 0,
				processing_time_ms REAL NOT NULL DEFAULT 0
			)
			"""
		)
		conn.execute(
			"CREATE INDEX IF NOT EXISTS idx_aggregation_results_started_at ON aggregation_results(started_at)"
		)

		# Per-source contribution of a run (source may since have been removed)
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS aggregation_sources (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				aggregation_id INTEGER NOT NULL,
				source_id TEXT NOT NULL,
				status TEXT NOT NULL,
				entries INTEGER NOT NULL DEFAULT 0,
				unique_domains INTEGER NOT NULL DEFAULT 0,
				duration_ms REAL NOT NULL DEFAULT 0,
				format TEXT,
				detected_format TEXT,
				confidence REAL,
				error TEXT,
				FOREIGN KEY(aggregation_id) REFERENCES aggregation_results(id) ON DELETE CASCADE
			)
			"""
		)
		conn.execute(
			"CREATE INDEX IF NOT EXISTS idx_aggregation_sources_aggregation_id ON aggregation_sources(aggregation_id)"
		)

	_log.debug("Database schema initialized")
