#!/usr/bin/env python3
#
# hostsagg/lists/aggregation.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Cross-source aggregation: fetch, detect, parse, merge.

One ``aggregate()`` call processes every source sequentially behind its own
error boundary, then merges all entries with allow precedence:

	1. every ``allow`` domain (case-folded) goes into the allow set
	2. every ``block`` domain not in the allow set goes into the block set

Both sets are returned sorted. The engine keeps no state between calls.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Union

from pydantic import ValidationError

from ..filtering.patterns import RuleType
from ..models.sources import HostsSource
from ..utils.time import elapsed_ms, isoformat_utc, utcnow
from .constants import DETECT_CONFIDENCE_THRESHOLD
from .detector import FormatDetection, SourceFormat, detect_format
from .fetch import FetchedContent
from .parser import EntryKind, ParsedEntry, parse_content

if TYPE_CHECKING:
	from ..filtering.engine import FilterEngine

_log = logging.getLogger(__name__)

__all__ = [
	"FetchStatus",
	"SourceContribution",
	"MergeResult",
	"AggregationOutcome",
	"merge_entries",
	"AggregationEngine",
]

TriggeredBy = Literal["manual", "scheduled", "auto"]
FetchResult = Union[str, FetchedContent, None]
FetchCallable = Callable[[HostsSource], Union[FetchResult, Awaitable[FetchResult]]]
PersistCallable = Callable[["AggregationOutcome"], Any]


class FetchStatus(str, Enum):
	SUCCESS = "SUCCESS"
	ERROR = "ERROR"
	CACHED = "CACHED"
	SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class SourceContribution:
	"""Per-source bookkeeping for one aggregation run."""
	source_id: str
	status: FetchStatus
	entries: int = 0
	unique_domains: int = 0
	duration_ms: float = 0.0
	format: str | None = None
	detection: FormatDetection | None = None
	error: str | None = None

	@property
	def succeeded(self) -> bool:
		return self.status in (FetchStatus.SUCCESS, FetchStatus.CACHED)

	def to_dict(self) -> dict[str, Any]:
		return {
			"source_id": self.source_id,
			"status": self.status.value,
			"entries": self.entries,
			"unique_domains": self.unique_domains,
			"duration_ms": self.duration_ms,
			"format": self.format,
			"detection": self.detection.to_dict() if self.detection else None,
			"error": self.error,
		}


@dataclass(frozen=True)
class MergeResult:
	blocked: list[str]
	allowed: list[str]
	block_entries: int
	allow_entries: int
	allow_excluded: int  # distinct block domains suppressed by an allow entry
	duplicates_removed: int


def merge_entries(entries: Iterable[ParsedEntry]) -> MergeResult:
	"""Deduplicate *entries* with allow precedence; idempotent and order-free.

	``duplicates_removed`` counts block entries not suppressed by an allow
	entry minus the size of the resulting block set.
	"""
	entries = list(entries)
	allowed: set[str] = set()
	allow_entries = 0
	for entry in entries:
		if entry.kind is EntryKind.ALLOW:
			allow_entries += 1
			allowed.add(entry.domain.lower())

	blocked: set[str] = set()
	suppressed: set[str] = set()
	block_entries = 0
	kept_block_entries = 0
	for entry in entries:
		if entry.kind is not EntryKind.BLOCK:
			continue
		block_entries += 1
		domain = entry.domain.lower()
		if domain in allowed:
			suppressed.add(domain)
			continue
		kept_block_entries += 1
		blocked.add(domain)

	return MergeResult(
		blocked=sorted(blocked),
		allowed=sorted(allowed),
		block_entries=block_entries,
		allow_entries=allow_entries,
		allow_excluded=len(suppressed),
		duplicates_removed=kept_block_entries - len(blocked),
	)


@dataclass
class AggregationOutcome:
	"""Result of one aggregation run."""
	total_sources: int
	total_entries: int
	blocked_domains: list[str]
	allowed_domains: list[str]
	duplicates_removed: int
	processing_time_ms: float
	sources: list[SourceContribution] = field(default_factory=list)
	allow_entries: int = 0
	block_entries: int = 0
	allow_excluded: int = 0
	filtered_domains: int = 0
	triggered_by: TriggeredBy = "manual"
	started_at: datetime = field(default_factory=utcnow)

	@property
	def unique_entries(self) -> int:
		return len(self.blocked_domains)

	@property
	def successful_sources(self) -> int:
		return sum(1 for s in self.sources if s.succeeded)

	@property
	def failed_sources(self) -> int:
		return sum(1 for s in self.sources if s.status is FetchStatus.ERROR)

	@property
	def skipped_sources(self) -> int:
		return sum(1 for s in self.sources if s.status is FetchStatus.SKIPPED)

	def to_summary(self) -> dict[str, Any]:
		"""JSON-safe summary without the domain lists."""
		return {
			"total_sources": self.total_sources,
			"successful_sources": self.successful_sources,
			"failed_sources": self.failed_sources,
			"skipped_sources": self.skipped_sources,
			"total_entries": self.total_entries,
			"unique_entries": self.unique_entries,
			"allowed_entries": len(self.allowed_domains),
			"duplicates_removed": self.duplicates_removed,
			"allow_excluded": self.allow_excluded,
			"filtered_domains": self.filtered_domains,
			"processing_time_ms": self.processing_time_ms,
			"triggered_by": self.triggered_by,
			"started_at": isoformat_utc(self.started_at),
			"sources": [s.to_dict() for s in self.sources],
		}


def _coerce_source(source: HostsSource | Mapping[str, Any]) -> HostsSource:
	if isinstance(source, HostsSource):
		return source
	return HostsSource.model_validate(source)


def _invalid_source(raw: Any, index: int, exc: ValidationError) -> SourceContribution:
	"""ERROR contribution for a source definition that fails validation."""
	source_id = raw.get("id") if isinstance(raw, Mapping) else None
	if not isinstance(source_id, str) or not source_id:
		source_id = f"#{index}"
	reason = "; ".join(err["msg"] for err in exc.errors()) or "validation failed"
	_log.warning("AGGREGATE source=%s has an invalid definition: %s", source_id, reason)
	return SourceContribution(
		source_id=source_id,
		status=FetchStatus.ERROR,
		error=f"Invalid source definition: {reason}",
	)


def _process_content(
	text: str,
	source: HostsSource,
	threshold: float,
) -> tuple[FormatDetection, str, list[ParsedEntry]]:
	"""Detect, resolve and parse one source's content (CPU-bound)."""
	manual = None if source.format == SourceFormat.AUTO.value else source.format
	detection = detect_format(text, manual, threshold, source_id=source.id)
	parse_format = detection.resolved_format
	if parse_format is SourceFormat.AUTO:
		parse_format = SourceFormat.STANDARD
	entries = parse_content(text, source.id, parse_format.value)
	return detection, parse_format.value, entries


class AggregationEngine:
	"""Runs aggregation over a list of sources with an injected fetcher.

	Usage::

		engine = AggregationEngine(filter_engine=filters)
		outcome = await engine.aggregate(sources, fetcher)

	*fetch* may be sync or async and may return text or ``FetchedContent``.
	*persist*, when given, receives the outcome after the merge; its failures
	are logged and never fail the run.
	"""

	def __init__(
		self,
		*,
		filter_engine: FilterEngine | None = None,
		confidence_threshold: float = DETECT_CONFIDENCE_THRESHOLD,
		persist: PersistCallable | None = None,
	) -> None:
		self.filter_engine = filter_engine
		self.confidence_threshold = confidence_threshold
		self.persist = persist

	async def _fetch(self, fetch: FetchCallable, source: HostsSource) -> FetchedContent:
		result = fetch(source)
		if inspect.isawaitable(result):
			result = await result
		if isinstance(result, FetchedContent):
			return result
		return FetchedContent(text=result or "")

	async def _process_source(
		self,
		source: HostsSource,
		fetch: FetchCallable,
		sink: list[ParsedEntry],
	) -> SourceContribution:
		if not source.enabled:
			return SourceContribution(source_id=source.id, status=FetchStatus.SKIPPED)

		started = time.monotonic()
		try:
			fetched = await self._fetch(fetch, source)
			detection, parse_format, entries = await asyncio.to_thread(
				_process_content, fetched.text, source, self.confidence_threshold,
			)
		except Exception as e:
			duration = elapsed_ms(started)
			_log.warning("AGGREGATE source=%s failed after %.0fms: %s", source.id, duration, e)
			return SourceContribution(
				source_id=source.id,
				status=FetchStatus.ERROR,
				duration_ms=duration,
				error=str(e) or type(e).__name__,
			)

		sink.extend(entries)
		duration = elapsed_ms(started)
		contribution = SourceContribution(
			source_id=source.id,
			status=FetchStatus.CACHED if fetched.cached else FetchStatus.SUCCESS,
			entries=len(entries),
			unique_domains=len({e.domain.lower() for e in entries}),
			duration_ms=duration,
			format=parse_format,
			detection=detection,
		)
		_log.info(
			"AGGREGATE source=%s %s entries=%d format=%s (%.0fms)",
			source.id, contribution.status.value, contribution.entries, parse_format, duration,
		)
		return contribution

	def _apply_filters(
		self,
		merged: MergeResult,
		first_source: Mapping[str, str],
	) -> tuple[list[str], list[str], int]:
		"""Move block domains whose first matching rule is ``allow`` into the allow set."""
		assert self.filter_engine is not None
		if not self.filter_engine.get_stats()["enabled_rules"]:
			return merged.blocked, merged.allowed, 0

		matches = self.filter_engine.match_many(merged.blocked, source_of=first_source)
		moved = {domain for domain, rule in matches.items() if rule.type is RuleType.ALLOW}
		if not moved:
			return merged.blocked, merged.allowed, 0
		_log.info("AGGREGATE filter rules allowed %d domains", len(moved))
		blocked = [d for d in merged.blocked if d not in moved]
		return blocked, sorted(set(merged.allowed).union(moved)), len(moved)

	async def aggregate(
		self,
		sources: Sequence[HostsSource | Mapping[str, Any]],
		fetch: FetchCallable,
		*,
		triggered_by: TriggeredBy = "manual",
	) -> AggregationOutcome:
		"""Aggregate *sources*; always returns an outcome, even if every source fails."""
		started_at = utcnow()
		started = time.monotonic()
		entries: list[ParsedEntry] = []
		contributions: list[SourceContribution] = []

		for index, raw_source in enumerate(sources):
			try:
				source = _coerce_source(raw_source)
			except ValidationError as e:
				contributions.append(_invalid_source(raw_source, index, e))
				continue
			contributions.append(await self._process_source(source, fetch, entries))

		merged = await asyncio.to_thread(merge_entries, entries)
		blocked, allowed, filtered = merged.blocked, merged.allowed, 0
		if self.filter_engine is not None and blocked:
			first_source: dict[str, str] = {}
			for entry in entries:
				if entry.kind is EntryKind.BLOCK:
					first_source.setdefault(entry.domain.lower(), entry.source_id)
			blocked, allowed, filtered = await asyncio.to_thread(self._apply_filters, merged, first_source)

		outcome = AggregationOutcome(
			total_sources=sum(1 for c in contributions if c.succeeded),
			total_entries=len(entries),
			blocked_domains=blocked,
			allowed_domains=allowed,
			duplicates_removed=merged.duplicates_removed,
			processing_time_ms=elapsed_ms(started),
			sources=contributions,
			allow_entries=merged.allow_entries,
			block_entries=merged.block_entries,
			allow_excluded=merged.allow_excluded,
			filtered_domains=filtered,
			triggered_by=triggered_by,
			started_at=started_at,
		)
		_log.info(
			"AGGREGATE completed: %d/%d sources, %d entries, %d blocked, %d allowed, %d duplicates (%.0fms)",
			outcome.successful_sources, len(contributions), outcome.total_entries,
			outcome.unique_entries, len(outcome.allowed_domains), outcome.duplicates_removed,
			outcome.processing_time_ms,
		)

		if self.persist is not None:
			try:
				result = self.persist(outcome)
				if inspect.isawaitable(result):
					await result
			except Exception:
				_log.exception("AGGREGATE failed to persist outcome")

		return outcome
