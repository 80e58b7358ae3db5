#!/usr/bin/env python3
#
# hostsagg/filtering/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Operator filter rules with ReDoS-safe pattern evaluation."""

from .engine import FilterEngine, FilterMatch, FilterRule, FilterStats
from .errors import (
	FilterError,
	PatternInvalidError,
	PatternRedosRiskError,
	PatternTimeoutError,
	RuleNotFoundError,
)
from .executor import BoundedPatternExecutor, RegexTimeouts
from .patterns import PatternValidation, RuleType, analyze_regex, validate_pattern

__all__ = [
	# Engine
	"FilterEngine",
	"FilterMatch",
	"FilterRule",
	"FilterStats",
	# Errors
	"FilterError",
	"PatternInvalidError",
	"PatternRedosRiskError",
	"PatternTimeoutError",
	"RuleNotFoundError",
	# Execution
	"BoundedPatternExecutor",
	"RegexTimeouts",
	# Analysis
	"PatternValidation",
	"RuleType",
	"analyze_regex",
	"validate_pattern",
]
