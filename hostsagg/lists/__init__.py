#!/usr/bin/env python3
#
# hostsagg/lists/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Hosts list parsing, format detection and cross-source aggregation."""

from .aggregation import AggregationEngine, AggregationOutcome, FetchStatus, SourceContribution, merge_entries
from .auto_aggregation import AutoAggregationCoordinator, CoordinatorState
from .detector import FormatDetection, SourceFormat, detect_format, resolve_format
from .domains import is_valid_adblock_domain, is_valid_domain
from .fetch import FetchedContent, SourceFetchError, SourceFetcher
from .parser import EntryKind, ParsedEntry, parse_content

__all__ = [
	"AggregationEngine",
	"AggregationOutcome",
	"AutoAggregationCoordinator",
	"CoordinatorState",
	"EntryKind",
	"FetchStatus",
	"FetchedContent",
	"FormatDetection",
	"ParsedEntry",
	"SourceContribution",
	"SourceFetchError",
	"SourceFetcher",
	"SourceFormat",
	"detect_format",
	"is_valid_adblock_domain",
	"is_valid_domain",
	"merge_entries",
	"parse_content",
	"resolve_format",
]
