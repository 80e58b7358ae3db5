#!/usr/bin/env python3
#
# tests/test_aggregation.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

import asyncio
import unittest

from hostsagg.filtering.engine import FilterEngine
from hostsagg.lists.aggregation import AggregationEngine, FetchStatus, merge_entries
from hostsagg.lists.fetch import FetchedContent, SourceFetchError
from hostsagg.lists.parser import parse_adblock, parse_standard_hosts
from hostsagg.models.sources import HostsSource


def _source(source_id: str, fmt: str = "auto", enabled: bool = True) -> HostsSource:
	return HostsSource(
		id=source_id,
		name=source_id,
		url=f"https://lists.example.org/{source_id}.txt",
		format=fmt,
		enabled=enabled,
	)


def _fetch_from(contents: dict):
	async def _fetch(source):
		value = contents[source.id]
		if isinstance(value, Exception):
			raise value
		return value
	return _fetch


class _NoRegexExecutor:
	def test(self, pattern, text, timeout_ms=None, flags=0):
		raise AssertionError("regex rules are not used here")

	def search_many(self, pattern, texts, timeout_ms=None, flags=0):
		raise AssertionError("regex rules are not used here")

	def close(self):
		pass


class MergeTests(unittest.TestCase):
	def test_allow_precedence_regardless_of_order(self):
		block = parse_standard_hosts("0.0.0.0 shared.com\n0.0.0.0 other.com", "a")
		allow = parse_adblock("@@||shared.com^", "b")
		for entries in (block + allow, allow + block):
			with self.subTest(first=entries[0].source_id):
				merged = merge_entries(entries)
				self.assertEqual(merged.blocked, ["other.com"])
				self.assertEqual(merged.allowed, ["shared.com"])
				self.assertEqual(merged.allow_excluded, 1)

	def test_idempotent_and_case_folded(self):
		entries = parse_standard_hosts("0.0.0.0 B.com\n0.0.0.0 a.com\n0.0.0.0 b.COM", "a")
		once = merge_entries(entries)
		twice = merge_entries(entries + entries)
		self.assertEqual(once.blocked, ["a.com", "b.com"])
		self.assertEqual((once.blocked, once.allowed), (twice.blocked, twice.allowed))

	def test_empty(self):
		merged = merge_entries([])
		self.assertEqual((merged.blocked, merged.allowed, merged.duplicates_removed), ([], [], 0))


class AggregationEngineTests(unittest.TestCase):
	def test_duplicate_scenario(self):
		contents = {
			"a": "0.0.0.0 example.com\n0.0.0.0 unique1.com",
			"b": "0.0.0.0 example.com\n0.0.0.0 unique2.com",
		}
		outcome = asyncio.run(AggregationEngine().aggregate([_source("a"), _source("b")], _fetch_from(contents)))

		self.assertEqual(outcome.total_sources, 2)
		self.assertEqual(outcome.total_entries, 4)
		self.assertEqual(outcome.unique_entries, 3)
		self.assertEqual(outcome.duplicates_removed, 1)
		self.assertEqual(outcome.blocked_domains, ["example.com", "unique1.com", "unique2.com"])
		self.assertEqual([s.status for s in outcome.sources], [FetchStatus.SUCCESS, FetchStatus.SUCCESS])
		self.assertEqual(outcome.sources[0].format, "standard")

	def test_adblock_allow_scenario(self):
		contents = {"abp": "||blocked.com^\n@@||allowed.com^\n||allowed.com^"}
		outcome = asyncio.run(AggregationEngine().aggregate([_source("abp", "adblock")], _fetch_from(contents)))

		self.assertEqual(outcome.blocked_domains, ["blocked.com"])
		self.assertEqual(outcome.allowed_domains, ["allowed.com"])
		self.assertEqual(outcome.duplicates_removed, 0)
		self.assertEqual(outcome.allow_excluded, 1)

	def test_detected_adblock_format_is_used(self):
		contents = {"abp": "||one.com^\n||two.com^\n@@||three.com^"}
		outcome = asyncio.run(AggregationEngine().aggregate([_source("abp")], _fetch_from(contents)))
		self.assertEqual(outcome.sources[0].format, "adblock")
		self.assertEqual(outcome.sources[0].detection.confidence, 100.0)
		self.assertEqual(outcome.blocked_domains, ["one.com", "two.com"])

	def test_failing_source_is_isolated(self):
		contents = {
			"bad": SourceFetchError("bad", "connection refused"),
			"good": "0.0.0.0 example.com",
			"boom": RuntimeError("unexpected"),
		}
		sources = [_source("bad"), _source("good"), _source("boom")]
		with self.assertLogs("hostsagg.lists.aggregation", level="WARNING"):
			outcome = asyncio.run(AggregationEngine().aggregate(sources, _fetch_from(contents)))

		self.assertEqual(outcome.total_sources, 1)
		self.assertEqual(outcome.failed_sources, 2)
		self.assertEqual(outcome.blocked_domains, ["example.com"])
		statuses = {s.source_id: s for s in outcome.sources}
		self.assertEqual(statuses["bad"].status, FetchStatus.ERROR)
		self.assertEqual(statuses["bad"].error, "connection refused")
		self.assertEqual(statuses["bad"].entries, 0)
		self.assertEqual(statuses["good"].status, FetchStatus.SUCCESS)

	def test_no_sources_vs_all_failed(self):
		engine = AggregationEngine()
		empty = asyncio.run(engine.aggregate([], _fetch_from({})))
		self.assertEqual((empty.total_sources, empty.sources), (0, []))

		failed = asyncio.run(engine.aggregate([_source("x")], _fetch_from({"x": OSError("down")})))
		self.assertEqual(failed.total_sources, 0)
		self.assertEqual(failed.unique_entries, 0)
		self.assertEqual(failed.sources[0].status, FetchStatus.ERROR)

	def test_disabled_source_skipped_and_cached_reported(self):
		contents = {"on": FetchedContent("0.0.0.0 a.com", cached=True)}
		sources = [_source("on"), _source("off", enabled=False)]
		outcome = asyncio.run(AggregationEngine().aggregate(sources, _fetch_from(contents)))
		self.assertEqual([s.status for s in outcome.sources], [FetchStatus.CACHED, FetchStatus.SKIPPED])
		self.assertEqual(outcome.total_sources, 1)
		self.assertEqual(outcome.skipped_sources, 1)

	def test_sync_fetch_and_mapping_sources(self):
		def fetch(source):
			return "0.0.0.0 sync.com"

		source = {"id": "m", "name": "m", "url": "https://x.example/hosts"}
		outcome = asyncio.run(AggregationEngine().aggregate([source], fetch, triggered_by="auto"))
		self.assertEqual(outcome.blocked_domains, ["sync.com"])
		self.assertEqual(outcome.triggered_by, "auto")
		summary = outcome.to_summary()
		self.assertNotIn("blocked_domains", summary)
		self.assertEqual(summary["unique_entries"], 1)

	def test_invalid_source_definition_is_isolated(self):
		def fetch(source):
			return f"0.0.0.0 {source.id}.com"

		sources = [
			{"id": "good", "name": "good", "url": "https://x.example/h"},
			{"id": "bad", "name": "bad", "url": "ftp://nope"},
			{"name": "no-id", "url": "https://y.example/h"},
			_source("after"),
		]
		with self.assertLogs("hostsagg.lists.aggregation", level="WARNING") as logs:
			outcome = asyncio.run(AggregationEngine().aggregate(sources, fetch))

		self.assertEqual(outcome.blocked_domains, ["after.com", "good.com"])
		self.assertEqual(outcome.total_sources, 2)
		self.assertEqual([c.source_id for c in outcome.sources], ["good", "bad", "#2", "after"])
		bad = outcome.sources[1]
		self.assertIs(bad.status, FetchStatus.ERROR)
		self.assertTrue(bad.error.startswith("Invalid source definition"))
		self.assertIs(outcome.sources[2].status, FetchStatus.ERROR)
		self.assertTrue(any("source=bad" in line for line in logs.output))

	def test_filter_rules_move_domains_to_allow_set(self):
		filters = FilterEngine(_NoRegexExecutor())
		filters.add_rule("*.cdn.example.com", "allow")
		filters.add_rule("ads.example.com", "block")
		engine = AggregationEngine(filter_engine=filters)
		contents = {"a": "0.0.0.0 ads.example.com\n0.0.0.0 img.cdn.example.com"}

		outcome = asyncio.run(engine.aggregate([_source("a")], _fetch_from(contents)))

		self.assertEqual(outcome.blocked_domains, ["ads.example.com"])
		self.assertEqual(outcome.allowed_domains, ["img.cdn.example.com"])
		self.assertEqual(outcome.filtered_domains, 1)

	def test_persist_called_and_failures_logged(self):
		seen = []

		def persist(outcome):
			seen.append(outcome)
			raise RuntimeError("disk full")

		engine = AggregationEngine(persist=persist)
		with self.assertLogs("hostsagg.lists.aggregation", level="ERROR"):
			outcome = asyncio.run(engine.aggregate([_source("a")], _fetch_from({"a": "0.0.0.0 a.com"})))
		self.assertEqual(seen, [outcome])


if __name__ == "__main__":
	unittest.main()
