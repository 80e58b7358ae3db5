#!/usr/bin/env python3
#
# hostsagg/filtering/engine.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Operator-defined filter rules evaluated per domain.

Rules live in an in-memory map owned by one ``FilterEngine`` instance; the
map is only touched through the engine's methods and guarded by a lock, as
``test_domain`` and the timeout auto-disable can race with add/update/remove.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import logging
import re
import threading
import time
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypedDict

from pydantic import ValidationError

from ..models.rules import DEFAULT_PRIORITY, FilterRuleCreate, FilterRuleUpdate
from ..utils.time import elapsed_ms, isoformat_utc, utcnow
from .errors import (
	FilterError,
	PatternInvalidError,
	PatternRedosRiskError,
	PatternTimeoutError,
	RuleNotFoundError,
)
from .executor import BoundedPatternExecutor, RegexTimeouts
from .patterns import PatternValidation, RuleType, has_wildcard, validate_pattern, wildcard_match

_log = logging.getLogger(__name__)

__all__ = ["FilterRule", "FilterMatch", "FilterStats", "FilterEngine", "UNSET"]

# Domains sent to the regex worker per round trip in match_many()
REGEX_BATCH_SIZE = 2000

# Distinguishes "not provided" from "set to None" in update_rule().
UNSET: Any = object()


@dataclass
class FilterRule:
	"""A stored filter rule. Copies are handed out; the engine owns originals."""
	id: str
	pattern: str
	type: RuleType
	priority: int
	enabled: bool
	source_id: str | None
	created_at: datetime
	updated_at: datetime
	seq: int = dataclasses.field(default=0, repr=False, compare=False)

	def applies_to(self, source_id: str | None) -> bool:
		return source_id is None or self.source_id is None or self.source_id == source_id

	def to_dict(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"pattern": self.pattern,
			"type": self.type.value,
			"priority": self.priority,
			"enabled": self.enabled,
			"source_id": self.source_id,
			"created_at": isoformat_utc(self.created_at),
			"updated_at": isoformat_utc(self.updated_at),
		}


@dataclass(frozen=True)
class FilterMatch:
	"""Result of evaluating one domain."""
	matched: bool
	domain: str
	match_time_ms: float
	rule: FilterRule | None = None


class FilterStats(TypedDict):
	total_rules: int
	enabled_rules: int
	patterns_evaluated: int
	matches_found: int
	average_match_time_ms: float


class FilterEngine:
	"""Priority-ordered rule set with ReDoS-safe evaluation.

	Usage::

		engine = FilterEngine()
		engine.add_rule("*.doubleclick.net", "wildcard", priority=10)
		engine.add_rule(r"^ads?\\d*\\.", "regex")
		match = engine.test_domain("ads1.example.com")

	Lower priority values are evaluated first; ties keep insertion order.
	"""

	def __init__(
		self,
		executor: BoundedPatternExecutor | None = None,
		*,
		regex_timeout_ms: float = RegexTimeouts.DEFAULT,
	) -> None:
		self._owns_executor = executor is None
		self._executor = executor or BoundedPatternExecutor(regex_timeout_ms)
		self.regex_timeout_ms = regex_timeout_ms
		self._rules: dict[str, FilterRule] = {}
		self._lock = threading.RLock()
		self._seq = itertools.count(1)
		self._patterns_evaluated = 0
		self._matches_found = 0
		self._total_match_time_ms = 0.0
		_log.debug("FILTER engine initialized (regex timeout %.0fms)", regex_timeout_ms)

	def close(self) -> None:
		"""Release the regex worker if this engine created it."""
		if self._owns_executor:
			self._executor.close()

	# -- validation ---------------------------------------------------------

	def validate_pattern(self, pattern: str, rule_type: RuleType | str) -> PatternValidation:
		return validate_pattern(pattern, rule_type)

	check_pattern_safety = validate_pattern

	def _require_safe(self, pattern: str, rule_type: RuleType) -> None:
		validation = validate_pattern(pattern, rule_type)
		detail = ", ".join(validation.issues) or "pattern rejected"
		if validation.is_redos_risk:
			raise PatternRedosRiskError(f"Pattern has ReDoS risk: {detail}", validation)
		if not validation.valid:
			raise PatternInvalidError(f"Invalid pattern: {detail}", validation)

	# -- mutation -----------------------------------------------------------

	def add_rule(
		self,
		pattern: str,
		rule_type: RuleType | str,
		*,
		priority: int = DEFAULT_PRIORITY,
		enabled: bool = True,
		source_id: str | None = None,
	) -> FilterRule:
		"""Validate and store a new rule.

		Raises:
			PatternRedosRiskError: pattern flagged for catastrophic backtracking
			PatternInvalidError: pattern failed validation
		"""
		rule_type = RuleType(rule_type)
		self._require_safe(pattern, rule_type)

		now = utcnow()
		rule = FilterRule(
			id=uuid.uuid4().hex,
			pattern=pattern,
			type=rule_type,
			priority=int(priority),
			enabled=bool(enabled),
			source_id=source_id,
			created_at=now,
			updated_at=now,
		)
		with self._lock:
			rule.seq = next(self._seq)
			self._rules[rule.id] = rule
		_log.debug("FILTER added rule %s (%s: %s)", rule.id, rule.type.value, rule.pattern)
		return dataclasses.replace(rule)

	def update_rule(
		self,
		rule_id: str,
		*,
		pattern: str | None = None,
		rule_type: RuleType | str | None = None,
		priority: int | None = None,
		enabled: bool | None = None,
		source_id: str | None = UNSET,
	) -> FilterRule:
		"""Keyword form of ``apply_update``; None leaves a field unchanged."""
		changes: dict[str, Any] = {
			"pattern": pattern,
			"type": RuleType(rule_type).value if rule_type is not None else None,
			"priority": priority,
			"enabled": enabled,
		}
		changes = {k: v for k, v in changes.items() if v is not None}
		if source_id is not UNSET:
			changes["source_id"] = source_id
		return self.apply_update(rule_id, FilterRuleUpdate.model_validate(changes))

	def apply_update(self, rule_id: str, update: FilterRuleUpdate) -> FilterRule:
		"""Apply the fields set on *update*; re-validates on pattern/type change.

		Raises:
			RuleNotFoundError: unknown *rule_id*
			PatternRedosRiskError / PatternInvalidError: new pattern rejected
		"""
		fields = update.model_fields_set
		with self._lock:
			rule = self._rules.get(rule_id)
			if rule is None:
				raise RuleNotFoundError(f"Filter rule not found: {rule_id}")

			new_pattern = update.pattern if update.pattern is not None else rule.pattern
			new_type = RuleType(update.type) if update.type is not None else rule.type
			if update.pattern is not None or update.type is not None:
				self._require_safe(new_pattern, new_type)

			rule.pattern = new_pattern
			rule.type = new_type
			if update.priority is not None:
				rule.priority = update.priority
			if update.enabled is not None:
				rule.enabled = update.enabled
			if "source_id" in fields:
				rule.source_id = update.source_id
			rule.updated_at = utcnow()
			return dataclasses.replace(rule)

	def remove_rule(self, rule_id: str) -> bool:
		with self._lock:
			existed = self._rules.pop(rule_id, None) is not None
		if existed:
			_log.debug("FILTER removed rule %s", rule_id)
		return existed

	def clear_rules(self) -> None:
		with self._lock:
			self._rules.clear()
			self._patterns_evaluated = 0
			self._matches_found = 0
			self._total_match_time_ms = 0.0
		_log.info("FILTER all rules cleared")

	# -- queries ------------------------------------------------------------

	def get_rule(self, rule_id: str) -> FilterRule | None:
		with self._lock:
			rule = self._rules.get(rule_id)
			return dataclasses.replace(rule) if rule else None

	def get_all_rules(
		self,
		*,
		enabled: bool | None = None,
		rule_type: RuleType | str | None = None,
	) -> list[FilterRule]:
		"""Return rule copies sorted by priority, then insertion order."""
		wanted_type = RuleType(rule_type) if rule_type is not None else None
		with self._lock:
			rules = [
				dataclasses.replace(r)
				for r in self._rules.values()
				if (enabled is None or r.enabled == enabled)
				and (wanted_type is None or r.type is wanted_type)
			]
		rules.sort(key=lambda r: (r.priority, r.seq))
		return rules

	def get_stats(self) -> FilterStats:
		with self._lock:
			total = len(self._rules)
			enabled = sum(1 for r in self._rules.values() if r.enabled)
			evaluated = self._patterns_evaluated
			return {
				"total_rules": total,
				"enabled_rules": enabled,
				"patterns_evaluated": evaluated,
				"matches_found": self._matches_found,
				"average_match_time_ms": (self._total_match_time_ms / evaluated) if evaluated else 0.0,
			}

	# -- evaluation ---------------------------------------------------------

	def _matches(self, rule: FilterRule, domain: str) -> bool:
		if rule.type is RuleType.REGEX:
			return self._executor.test(rule.pattern, domain, self.regex_timeout_ms, re.IGNORECASE)
		if rule.type is RuleType.WILDCARD or has_wildcard(rule.pattern):
			return wildcard_match(rule.pattern, domain)
		return rule.pattern.lower() == domain.lower()

	def _disable_after_timeout(self, rule_id: str) -> None:
		with self._lock:
			rule = self._rules.get(rule_id)
			if rule is None or not rule.enabled:
				return
			rule.enabled = False
			rule.updated_at = utcnow()
		_log.warning("FILTER disabled rule %s due to timeout", rule_id)

	def _record(self, match_time_ms: float, matched: bool) -> None:
		with self._lock:
			self._patterns_evaluated += 1
			self._total_match_time_ms += match_time_ms
			if matched:
				self._matches_found += 1
			# Keep counters bounded for long-running processes
			if self._patterns_evaluated > 1_000_000:
				self._patterns_evaluated = 1
				self._total_match_time_ms = match_time_ms

	def test_domain(self, domain: str, *, source_id: str | None = None) -> FilterMatch:
		"""Evaluate *domain* against enabled rules; first match wins.

		Rules scoped to a source only apply when *source_id* is None or equal.
		A regex rule that times out is disabled and evaluation continues.
		"""
		started = time.monotonic()
		for rule in self.get_all_rules(enabled=True):
			if not rule.applies_to(source_id):
				continue
			try:
				matched = self._matches(rule, domain)
			except PatternTimeoutError as exc:
				_log.warning("FILTER rule %s failed for domain %s: %s", rule.id, domain, exc)
				self._disable_after_timeout(rule.id)
				continue
			except ValueError as exc:
				_log.warning("FILTER rule %s failed for domain %s: %s", rule.id, domain, exc)
				continue

			if matched:
				match_time = elapsed_ms(started)
				self._record(match_time, True)
				return FilterMatch(matched=True, domain=domain, match_time_ms=match_time, rule=rule)

		match_time = elapsed_ms(started)
		self._record(match_time, False)
		return FilterMatch(matched=False, domain=domain, match_time_ms=match_time)

	async def test_domains(self, domains: Iterable[str]) -> list[FilterMatch]:
		"""Evaluate several domains without blocking the event loop."""
		return [await asyncio.to_thread(self.test_domain, domain) for domain in domains]

	def _match_batch(self, rule: FilterRule, domains: list[str]) -> set[str]:
		if rule.type is not RuleType.REGEX:
			return {d for d in domains if self._matches(rule, d)}
		hits: set[str] = set()
		for start in range(0, len(domains), REGEX_BATCH_SIZE):
			chunk = domains[start:start + REGEX_BATCH_SIZE]
			flags = self._executor.search_many(rule.pattern, chunk, self.regex_timeout_ms, re.IGNORECASE)
			hits.update(d for d, hit in zip(chunk, flags) if hit)
		return hits

	def match_many(
		self,
		domains: Iterable[str],
		*,
		source_of: Mapping[str, str] | None = None,
	) -> dict[str, FilterRule]:
		"""Map every matching domain to its first matching rule.

		Gives the same answer as ``test_domain`` per domain (with the source
		taken from *source_of*) but walks rule by rule, so a regex rule costs
		one worker round trip per ``REGEX_BATCH_SIZE`` domains. A regex rule
		that times out is disabled and contributes no matches.
		"""
		started = time.monotonic()
		pending = list(dict.fromkeys(domains))
		total = len(pending)
		found: dict[str, FilterRule] = {}
		for rule in self.get_all_rules(enabled=True):
			if not pending:
				break
			candidates = [
				d for d in pending
				if rule.applies_to(source_of.get(d) if source_of is not None else None)
			]
			if not candidates:
				continue
			try:
				hits = self._match_batch(rule, candidates)
			except PatternTimeoutError as exc:
				_log.warning("FILTER rule %s failed during batch evaluation: %s", rule.id, exc)
				self._disable_after_timeout(rule.id)
				continue
			except ValueError as exc:
				_log.warning("FILTER rule %s failed during batch evaluation: %s", rule.id, exc)
				continue
			if hits:
				for domain in hits:
					found[domain] = rule
				pending = [d for d in pending if d not in hits]

		with self._lock:
			self._patterns_evaluated += total
			self._matches_found += len(found)
			self._total_match_time_ms += elapsed_ms(started)
		return found

	# -- import / export ----------------------------------------------------

	def import_rules(self, rules: Iterable[Mapping[str, Any] | FilterRuleCreate]) -> dict[str, Any]:
		"""Bulk-add rules; failures are collected, not raised."""
		results: dict[str, Any] = {"imported": 0, "failed": 0, "errors": []}
		for raw in rules:
			try:
				payload = raw if isinstance(raw, FilterRuleCreate) else FilterRuleCreate.model_validate(raw)
				self.add_rule(
					payload.pattern,
					payload.type,
					priority=payload.priority,
					enabled=payload.enabled,
					source_id=payload.source_id,
				)
				results["imported"] += 1
			except (ValidationError, FilterError) as exc:
				results["failed"] += 1
				pattern = getattr(raw, "pattern", None) if not isinstance(raw, Mapping) else raw.get("pattern")
				results["errors"].append(f"Failed to import rule {pattern!r}: {exc}")
		_log.info("FILTER imported %d rules, %d failed", results["imported"], results["failed"])
		return results

	def export_rules(self) -> list[dict[str, Any]]:
		return [rule.to_dict() for rule in self.get_all_rules()]
