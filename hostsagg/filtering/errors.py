#!/usr/bin/env python3
#
# hostsagg/filtering/errors.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Filter rule exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from .patterns import PatternValidation

__all__ = [
	"FilterError",
	"PatternInvalidError",
	"PatternRedosRiskError",
	"PatternTimeoutError",
	"RuleNotFoundError",
]


class FilterError(Exception):
	"""Base class for filter rule failures."""
	code = "FILTER_ERROR"


class PatternInvalidError(FilterError):
	"""Rule pattern failed safety analysis; the rule was not stored."""
	code = "PATTERN_INVALID"

	def __init__(self, message: str, validation: "PatternValidation | None" = None) -> None:
		super().__init__(message)
		self.validation = validation


class PatternRedosRiskError(PatternInvalidError):
	"""Rule pattern is prone to catastrophic backtracking."""
	code = "PATTERN_REDOS_RISK"


class PatternTimeoutError(FilterError):
	"""Bounded pattern execution exceeded its timeout."""
	code = "PATTERN_TIMEOUT"

	def __init__(self, pattern: str, timeout_ms: float) -> None:
		super().__init__(f"Pattern {pattern!r} timed out after {timeout_ms:.0f}ms")
		self.pattern = pattern
		self.timeout_ms = timeout_ms


class RuleNotFoundError(FilterError, KeyError):
	"""No rule with the given id."""
	code = "RESOURCE_NOT_FOUND"

	def __str__(self) -> str:
		return str(self.args[0]) if self.args else "Filter rule not found"
