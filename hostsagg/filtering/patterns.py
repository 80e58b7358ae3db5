#!/usr/bin/env python3
#
# hostsagg/filtering/patterns.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Static safety analysis of filter rule patterns (ReDoS protection).

Regex rules are scanned once, without executing them, and scored on
quantifiers, nested quantifiers, alternations, groups and backreferences.
Two structural shapes are treated as catastrophic regardless of score:

- a group containing an unbounded quantifier that is itself repeated,
  e.g. ``(a+)+`` or ``(\\w*){2,}``;
- a backreference to a group that is itself quantified, e.g. ``(a)+\\1``.

The analysis is a pure function of its input, so results are reproducible.
"""

from __future__ import annotations

import functools
import math
import re
from dataclasses import dataclass, field
from enum import Enum

__all__ = [
	"RuleType",
	"PatternValidation",
	"PATTERN_MAX_LENGTH",
	"RULE_PATTERN_MAX_LENGTH",
	"MAX_WILDCARD_DEPTH",
	"COMPLEXITY_CEILING",
	"analyze_regex",
	"validate_wildcard",
	"validate_pattern",
	"has_wildcard",
	"wildcard_to_regex",
	"compile_wildcard",
	"wildcard_match",
]


class RuleType(str, Enum):
	"""How a filter rule pattern is interpreted."""
	BLOCK = "block"
	ALLOW = "allow"
	WILDCARD = "wildcard"
	REGEX = "regex"


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

PATTERN_MAX_LENGTH = 1000
MAX_NESTED_QUANTIFIERS = 3
MAX_ALTERNATIONS = 10
MAX_GROUPS = 20
MAX_BACKREFERENCES = 5
MAX_QUANTIFIERS = 30
COMPLEXITY_CEILING = 500

RULE_PATTERN_MAX_LENGTH = 500
MAX_WILDCARD_DEPTH = 3
WILDCARD_COMPLEXITY = 10
EXACT_COMPLEXITY = 1

_BRACE_QUANTIFIER_RE = re.compile(r"\{(\d+)(,(\d*))?\}")


@dataclass(frozen=True)
class PatternValidation:
	"""Result of analysing one pattern."""
	valid: bool
	complexity: float
	issues: list[str] = field(default_factory=list)
	is_redos_risk: bool = False

	def to_dict(self) -> dict[str, object]:
		return {
			"valid": self.valid,
			"complexity": self.complexity,
			"issues": list(self.issues),
			"is_redos_risk": self.is_redos_risk,
		}


# ---------------------------------------------------------------------------
# Regex scanner
# ---------------------------------------------------------------------------

@dataclass
class _Group:
	capturing: bool
	index: int | None
	has_unbounded: bool = False
	has_quantifier: bool = False


@dataclass
class _RegexStats:
	quantifiers: int = 0
	nested_quantifiers: int = 0
	alternations: int = 0
	groups: int = 0
	backreferences: list[int] = field(default_factory=list)
	quantified_groups: set[int] = field(default_factory=set)
	repeated_unbounded_group: bool = False


def _skip_char_class(pattern: str, i: int) -> int:
	"""Return the index just past the character class starting at *i*."""
	n = len(pattern)
	j = i + 1
	if j < n and pattern[j] == "^":
		j += 1
	if j < n and pattern[j] == "]":
		j += 1  # leading ']' is a literal
	while j < n:
		ch = pattern[j]
		if ch == "\\":
			j += 2
			continue
		if ch == "]":
			return j + 1
		j += 1
	return n


def _group_prefix(pattern: str, i: int) -> tuple[int, bool]:
	"""Parse the ``(?...`` prefix at *i* (pointing at '(').

	Returns ``(next_index, capturing)``.
	"""
	n = len(pattern)
	if i + 1 >= n or pattern[i + 1] != "?":
		return i + 1, True
	rest = pattern[i + 2:i + 4]
	if rest.startswith("P<") or (rest.startswith("<") and rest[1:2] not in ("=", "!")):
		end = pattern.find(">", i)
		return (end + 1 if end != -1 else n), True
	if rest in ("<=", "<!"):
		return i + 4, False
	return i + 3, False


def _read_quantifier(pattern: str, j: int) -> tuple[int, bool] | None:
	"""If a quantifier starts at *j*, return ``(next_index, unbounded)``."""
	if j >= len(pattern):
		return None
	ch = pattern[j]
	if ch in "*+":
		end, unbounded = j + 1, True
	elif ch == "?":
		end, unbounded = j + 1, False
	elif ch == "{":
		m = _BRACE_QUANTIFIER_RE.match(pattern, j)
		if not m:
			return None
		end = m.end()
		unbounded = m.group(2) is not None and not m.group(3)
	else:
		return None
	# Lazy / possessive modifier belongs to the same quantifier
	if end < len(pattern) and pattern[end] in "?+":
		end += 1
	return end, unbounded


def _scan_regex(pattern: str) -> _RegexStats:
	"""Single pass over *pattern* collecting structural counts. Never raises."""
	stats = _RegexStats()
	stack: list[_Group] = []
	next_group_index = 1
	n = len(pattern)
	i = 0

	def _after_atom(j: int, group: _Group | None = None) -> int:
		quant = _read_quantifier(pattern, j)
		if quant is None:
			return j
		end, unbounded = quant
		stats.quantifiers += 1
		if stack:
			stack[-1].has_quantifier = True
			if unbounded:
				stack[-1].has_unbounded = True
		if group is not None:
			if group.has_quantifier:
				stats.nested_quantifiers += 1
			if group.has_unbounded and (unbounded or pattern[j] == "{"):
				stats.repeated_unbounded_group = True
			if group.capturing and group.index is not None:
				stats.quantified_groups.add(group.index)
		return end

	while i < n:
		ch = pattern[i]
		if ch == "\\":
			nxt = pattern[i + 1:i + 2]
			if nxt.isdigit() and nxt != "0":
				m = re.match(r"\d{1,2}", pattern[i + 1:])
				digits = m.group(0) if m else nxt
				stats.backreferences.append(int(digits))
				i = _after_atom(i + 1 + len(digits))
				continue
			i = _after_atom(i + 2)
			continue
		if ch == "[":
			i = _after_atom(_skip_char_class(pattern, i))
			continue
		if ch == "(":
			if pattern.startswith("(?P=", i):
				end = pattern.find(")", i)
				i = _after_atom(end + 1 if end != -1 else n)
				continue
			j, capturing = _group_prefix(pattern, i)
			index = None
			if capturing:
				index = next_group_index
				next_group_index += 1
			stats.groups += 1
			stack.append(_Group(capturing=capturing, index=index))
			i = j
			continue
		if ch == ")":
			if not stack:
				i += 1
				continue
			group = stack.pop()
			if stack:
				stack[-1].has_quantifier |= group.has_quantifier
				stack[-1].has_unbounded |= group.has_unbounded
			i = _after_atom(i + 1, group)
			continue
		if ch == "|":
			stats.alternations += 1
			i += 1
			continue
		i = _after_atom(i + 1)

	return stats


def analyze_regex(pattern: str) -> PatternValidation:
	"""Full complexity and ReDoS analysis of a regex pattern."""
	issues: list[str] = []
	complexity: float = 0
	redos = False

	if len(pattern) > PATTERN_MAX_LENGTH:
		issues.append(f"Pattern exceeds maximum length of {PATTERN_MAX_LENGTH} characters")
		complexity += 100

	stats = _scan_regex(pattern)

	if stats.quantifiers > MAX_QUANTIFIERS:
		issues.append(f"Pattern contains too many quantifiers ({stats.quantifiers} > {MAX_QUANTIFIERS})")
		complexity += stats.quantifiers * 2

	if stats.nested_quantifiers > MAX_NESTED_QUANTIFIERS:
		issues.append(
			f"Pattern has {stats.nested_quantifiers} nested quantifiers "
			f"(max: {MAX_NESTED_QUANTIFIERS}) - ReDoS risk"
		)
		redos = True
		complexity += stats.nested_quantifiers * 50

	if stats.alternations > MAX_ALTERNATIONS:
		issues.append(f"Pattern contains too many alternations ({stats.alternations} > {MAX_ALTERNATIONS})")
		complexity += stats.alternations * 5

	if stats.groups > MAX_GROUPS:
		issues.append(f"Pattern contains too many groups ({stats.groups} > {MAX_GROUPS})")
		complexity += stats.groups * 3

	backrefs = len(stats.backreferences)
	if backrefs > MAX_BACKREFERENCES:
		issues.append(f"Pattern contains too many backreferences ({backrefs} > {MAX_BACKREFERENCES})")
		complexity += backrefs * 10

	quantified_backref = any(ref in stats.quantified_groups for ref in stats.backreferences)
	if stats.repeated_unbounded_group or quantified_backref:
		issues.append("Pattern contains exponential complexity (catastrophic backtracking risk)")
		redos = True
		complexity += COMPLEXITY_CEILING

	try:
		re.compile(pattern)
	except (re.error, RecursionError, OverflowError) as exc:
		issues.append(f"Invalid regex syntax: {exc}")
		complexity = math.inf

	valid = not issues and complexity < COMPLEXITY_CEILING
	return PatternValidation(valid=valid, complexity=complexity, issues=issues, is_redos_risk=redos)


# ---------------------------------------------------------------------------
# Wildcards
# ---------------------------------------------------------------------------

def has_wildcard(pattern: str) -> bool:
	return "*" in pattern or "?" in pattern


def validate_wildcard(pattern: str) -> PatternValidation:
	"""Validate a ``*``/``?`` wildcard pattern (length and ``*`` depth)."""
	issues: list[str] = []
	if not pattern:
		issues.append("Pattern must not be empty")
	if len(pattern) > RULE_PATTERN_MAX_LENGTH:
		issues.append(f"Pattern exceeds maximum length of {RULE_PATTERN_MAX_LENGTH}")
	stars = pattern.count("*")
	if stars > MAX_WILDCARD_DEPTH:
		issues.append(f"Pattern has too many wildcards ({stars} > {MAX_WILDCARD_DEPTH})")
	return PatternValidation(
		valid=not issues,
		complexity=WILDCARD_COMPLEXITY,
		issues=issues,
		is_redos_risk=False,
	)


def wildcard_to_regex(pattern: str) -> str:
	"""Translate a wildcard into an anchored regex (``*`` -> ``.*``, ``?`` -> ``.``)."""
	parts = []
	for ch in pattern:
		if ch == "*":
			parts.append(".*")
		elif ch == "?":
			parts.append(".")
		else:
			parts.append(re.escape(ch))
	return "^" + "".join(parts) + "$"


@functools.lru_cache(maxsize=4096)
def compile_wildcard(pattern: str) -> re.Pattern[str]:
	return re.compile(wildcard_to_regex(pattern), re.IGNORECASE)


def wildcard_match(pattern: str, domain: str) -> bool:
	"""Case-insensitive wildcard match; invalid wildcards never match."""
	if not validate_wildcard(pattern).valid:
		return False
	return compile_wildcard(pattern).match(domain) is not None


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def _validate_exact(pattern: str) -> PatternValidation:
	issues: list[str] = []
	if not pattern:
		issues.append("Pattern must not be empty")
	elif len(pattern) > PATTERN_MAX_LENGTH:
		issues.append(f"Pattern exceeds maximum length of {PATTERN_MAX_LENGTH} characters")
	return PatternValidation(valid=not issues, complexity=EXACT_COMPLEXITY, issues=issues)


def validate_pattern(pattern: str, rule_type: RuleType | str) -> PatternValidation:
	"""Validate *pattern* at the strictness appropriate for *rule_type*.

	Raises:
		TypeError: pattern is not a string
		ValueError: unknown rule type
	"""
	if not isinstance(pattern, str):
		raise TypeError(f"pattern must be str, got {type(pattern).__name__}")
	rule_type = RuleType(rule_type)

	if rule_type is RuleType.REGEX:
		return analyze_regex(pattern)
	if rule_type is RuleType.WILDCARD or has_wildcard(pattern):
		return validate_wildcard(pattern)
	return _validate_exact(pattern)
