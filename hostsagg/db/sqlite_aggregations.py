#!/usr/bin/env python3
#
# hostsagg/db/sqlite_aggregations.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Aggregation history persistence."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from .sqlite_runtime import transaction
from .sqlite_sources import update_fetch_status

if TYPE_CHECKING:
	from ..lists.aggregation import AggregationOutcome


# ─────────────────────────────────────────────────────────────────────────────
# Aggregation runs
# ─────────────────────────────────────────────────────────────────────────────


def record_aggregation(conn: sqlite3.Connection, outcome: AggregationOutcome) -> int:
	"""Store one run with its per-source contributions; returns the run id.

	Fetch bookkeeping on the ``sources`` table is updated in the same
	transaction. Skipped sources keep their previous fetch status.
	"""
	with transaction(conn):
		cur = conn.execute(
			"""
			INSERT INTO aggregation_results (
				started_at, triggered_by, total_sources, successful_sources, failed_sources,
				total_entries, unique_entries, allowed_entries, duplicates_removed,
				allow_excluded, filtered_domains, processing_time_ms
			)
			VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
			""",
			(
				outcome.started_at,
				outcome.triggered_by,
				outcome.total_sources,
				outcome.successful_sources,
				outcome.failed_sources,
				outcome.total_entries,
				outcome.unique_entries,
				len(outcome.allowed_domains),
				outcome.duplicates_removed,
				outcome.allow_excluded,
				outcome.filtered_domains,
				outcome.processing_time_ms,
			),
		)
		aggregation_id = cur.lastrowid

		for contribution in outcome.sources:
			detection = contribution.detection
			conn.execute(
				"""
				INSERT INTO aggregation_sources (
					aggregation_id, source_id, status, entries, unique_domains,
					duration_ms, format, detected_format, confidence, error
				)
				VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
				""",
				(
					aggregation_id,
					contribution.source_id,
					contribution.status.value,
					contribution.entries,
					contribution.unique_domains,
					contribution.duration_ms,
					contribution.format,
					detection.detected_format.value if detection else None,
					detection.confidence if detection else None,
					contribution.error,
				),
			)
			if contribution.status.value == "SKIPPED":
				continue
			if contribution.succeeded:
				update_fetch_status(
					conn, contribution.source_id, contribution.status.value,
					entry_count=contribution.entries,
				)
			else:
				update_fetch_status(conn, contribution.source_id, contribution.status.value, error=contribution.error)

		return aggregation_id


def get_latest_aggregation(conn: sqlite3.Connection) -> sqlite3.Row | None:
	"""Get the most recent aggregation run."""
	cur = conn.execute("SELECT * FROM aggregation_results ORDER BY id DESC LIMIT 1")
	return cur.fetchone()


def list_aggregation_sources(conn: sqlite3.Connection, aggregation_id: int) -> list[sqlite3.Row]:
	"""List per-source contributions of one run in processing order."""
	cur = conn.execute(
		"SELECT * FROM aggregation_sources WHERE aggregation_id = ? ORDER BY id",
		(aggregation_id,),
	)
	return cur.fetchall()


def get_aggregation_stats(conn: sqlite3.Connection) -> dict[str, Any]:
	"""Summary over all recorded runs."""
	row = conn.execute(
		"""
		SELECT
			COUNT(*) AS total_runs,
			COALESCE(AVG(processing_time_ms), 0) AS avg_processing_time_ms,
			COALESCE(MAX(unique_entries), 0) AS max_unique_entries
		FROM aggregation_results
		"""
	).fetchone()
	latest = get_latest_aggregation(conn)
	return {
		"total_runs": int(row["total_runs"]),
		"avg_processing_time_ms": float(row["avg_processing_time_ms"]),
		"max_unique_entries": int(row["max_unique_entries"]),
		"last_run_at": latest["started_at"] if latest else None,
		"last_unique_entries": int(latest["unique_entries"]) if latest else 0,
		"last_total_sources": int(latest["total_sources"]) if latest else 0,
	}


def prune_aggregations(conn: sqlite3.Connection, keep: int = 100) -> int:
	"""Delete all but the newest *keep* runs; returns rows removed."""
	with transaction(conn):
		cur = conn.execute(
			"""
			DELETE FROM aggregation_results
			WHERE id NOT IN (SELECT id FROM aggregation_results ORDER BY id DESC LIMIT ?)
			""",
			(keep,),
		)
		return cur.rowcount
