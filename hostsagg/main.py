#!/usr/bin/env python3
#
# hostsagg/main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Logging setup and runtime wiring for the aggregation pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .db.sqlite_aggregations import prune_aggregations, record_aggregation
from .db.sqlite_runtime import connect
from .db.sqlite_schema import init_schema
from .db.sqlite_sources import delete_source, list_sources, set_source_enabled, upsert_source
from .filtering.engine import FilterEngine
from .filtering.executor import BoundedPatternExecutor
from .lists.aggregation import AggregationEngine, AggregationOutcome, TriggeredBy
from .lists.auto_aggregation import AutoAggregationCoordinator
from .lists.fetch import SourceFetcher
from .lists.render import write_outputs
from .models.sources import HostsSource
from .utils.config import Config, ConfigValidationError, get_config, load_config

_log = logging.getLogger(__name__)

# ANSI color codes for log levels (if TTY)
_LOG_COLORS = {
	"DEBUG": "\033[36m",    # Cyan
	"INFO": "\033[32m",     # Green
	"WARNING": "\033[33m",  # Yellow
	"ERROR": "\033[31m",    # Red
	"CRITICAL": "\033[35m", # Magenta
}
_RESET = "\033[0m"
_HISTORY_KEEP = 100


class _ColoredFormatter(logging.Formatter):
	"""Custom formatter that adds color to log levels in TTY."""

	def format(self, record):
		orig_levelname = record.levelname
		levelname = orig_levelname
		if levelname in _LOG_COLORS:
			record.levelname = f"{_LOG_COLORS[levelname]}{orig_levelname:<8}{_RESET}"
		else:
			record.levelname = f"{orig_levelname:<8}"
		try:
			return super().format(record)
		finally:
			record.levelname = orig_levelname


def _setup_logging(log_level: str) -> None:
	"""Configure unified logging for the entire application."""
	level = getattr(logging, log_level, logging.INFO)

	if sys.stdout.isatty():
		formatter = _ColoredFormatter(
			fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
			datefmt="%Y-%m-%d %H:%M:%S",
		)
	else:
		formatter = logging.Formatter(
			fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
			datefmt="%Y-%m-%d %H:%M:%S",
		)

	# force=True removes any pre-existing handlers so every logger shares the format
	logging.basicConfig(
		level=level,
		handlers=[logging.StreamHandler(sys.stdout)],
		force=True,
	)
	for handler in logging.root.handlers:
		handler.setFormatter(formatter)

	# httpx logs every request at INFO
	for name in ("httpx", "httpcore"):
		logging.getLogger(name).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------

@dataclass
class Runtime:
	"""Wired collaborators for one process."""
	config: Config
	conn: sqlite3.Connection
	fetcher: SourceFetcher
	filter_engine: FilterEngine
	engine: AggregationEngine
	coordinator: AutoAggregationCoordinator | None = None


def _read_json_list(path: Path, what: str) -> list[Any]:
	if not path.is_file():
		return []
	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except (OSError, json.JSONDecodeError) as exc:
		raise ConfigValidationError(f"Cannot read {what} file {path}: {exc}") from exc
	if isinstance(data, dict):
		data = data.get(what, [])
	if not isinstance(data, list):
		raise ConfigValidationError(f"{what} file {path} must contain a JSON list")
	return data


def seed_sources(conn: sqlite3.Connection, path: Path) -> int:
	"""Upsert source definitions from a JSON file; invalid items are skipped."""
	seeded = 0
	for index, item in enumerate(_read_json_list(path, "sources")):
		try:
			source = HostsSource.model_validate(item)
		except ValidationError as exc:
			_log.warning("AGGREGATE skipping invalid source #%d in %s: %s", index, path, exc)
			continue
		upsert_source(conn, source)
		seeded += 1
	if seeded:
		_log.info("AGGREGATE seeded %d sources from %s", seeded, path)
	return seeded


def build_runtime(config: Config | None = None) -> Runtime:
	"""Create db, fetcher, filter engine, aggregation engine and coordinator."""
	cfg = config or load_config()

	conn = connect(cfg.db_path)
	init_schema(conn)
	seed_sources(conn, cfg.sources_file)

	filter_engine = FilterEngine(
		BoundedPatternExecutor(cfg.regex_timeout_ms),
		regex_timeout_ms=cfg.regex_timeout_ms,
	)
	rules = _read_json_list(cfg.rules_file, "rules")
	if rules:
		result = filter_engine.import_rules(rules)
		for error in result["errors"]:
			_log.warning("FILTER %s", error)

	def _persist(outcome: AggregationOutcome) -> None:
		record_aggregation(conn, outcome)
		prune_aggregations(conn, _HISTORY_KEEP)

	runtime = Runtime(
		config=cfg,
		conn=conn,
		fetcher=SourceFetcher(cfg.cache_dir, timeout=cfg.fetch_timeout, cache_ttl=cfg.cache_ttl),
		filter_engine=filter_engine,
		engine=AggregationEngine(
			filter_engine=filter_engine,
			confidence_threshold=cfg.confidence_threshold,
			persist=_persist,
		),
	)
	runtime.coordinator = AutoAggregationCoordinator(
		lambda: run_once(runtime, triggered_by="auto"),
		enabled=cfg.auto_aggregate,
		settle_delay=cfg.settle_delay,
	)
	return runtime


async def run_once(runtime: Runtime, *, triggered_by: TriggeredBy = "manual") -> AggregationOutcome:
	"""Aggregate all stored sources, persist the run and write output files."""
	sources = list_sources(runtime.conn)
	outcome = await runtime.engine.aggregate(sources, runtime.fetcher, triggered_by=triggered_by)
	await asyncio.to_thread(
		write_outputs,
		outcome,
		runtime.config.output_dir,
		include_header=runtime.config.include_headers,
	)
	return outcome


async def shutdown(runtime: Runtime, timeout: float = 5.0) -> None:
	"""Stop the coordinator and release worker process and db connection."""
	if runtime.coordinator is not None:
		await runtime.coordinator.stop(timeout)
	runtime.filter_engine.close()
	runtime.conn.close()


# ---------------------------------------------------------------------------
# Source changes
# ---------------------------------------------------------------------------

def _sources_changed(runtime: Runtime, reason: str) -> None:
	if runtime.coordinator is not None and runtime.coordinator.trigger():
		_log.debug("AUTO_AGGREGATE triggered by %s", reason)


async def save_source(runtime: Runtime, source: HostsSource | Mapping[str, Any]) -> HostsSource:
	"""Create or update a source definition, then request a re-aggregation.

	Raises:
		pydantic.ValidationError: *source* is not a valid definition
	"""
	if not isinstance(source, HostsSource):
		source = HostsSource.model_validate(source)
	upsert_source(runtime.conn, source)
	_log.info("AGGREGATE source %s saved", source.id)
	_sources_changed(runtime, f"save of {source.id}")
	return source


async def toggle_source(runtime: Runtime, source_id: str, enabled: bool) -> bool:
	"""Enable or disable a source; False when it does not exist."""
	if not set_source_enabled(runtime.conn, source_id, enabled):
		return False
	_log.info("AGGREGATE source %s %s", source_id, "enabled" if enabled else "disabled")
	_sources_changed(runtime, f"toggle of {source_id}")
	return True


async def remove_source(runtime: Runtime, source_id: str) -> bool:
	"""Delete a source; False when it does not exist."""
	if not delete_source(runtime.conn, source_id):
		return False
	_log.info("AGGREGATE source %s removed", source_id)
	_sources_changed(runtime, f"removal of {source_id}")
	return True


async def main() -> int:
	"""Run one aggregation with configuration from the environment."""
	cfg = get_config()
	_setup_logging(cfg.log_level)

	runtime = build_runtime(cfg)
	try:
		outcome = await run_once(runtime)
	finally:
		await shutdown(runtime)

	summary = outcome.to_summary()
	_log.info(
		"AGGREGATE %d domains blocked, %d allowed from %d sources (%d failed)",
		summary["unique_entries"], summary["allowed_entries"],
		summary["total_sources"], summary["failed_sources"],
	)
	return 0 if outcome.total_sources or not outcome.sources else 1
