#!/usr/bin/env python3
#
# hostsagg/lists/detector.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Heuristic detection of hosts list syntax (standard vs adblock)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .constants import (
	ADBLOCK_SHAPE_RE,
	DETECT_CONFIDENCE_THRESHOLD,
	DETECT_MIXED_CONTENT_THRESHOLD,
	DETECT_SAMPLE_LINES,
	STANDARD_COMMENT_PREFIXES,
	STANDARD_SHAPE_RE,
)

_log = logging.getLogger(__name__)

__all__ = ["SourceFormat", "FormatDetection", "detect_format", "resolve_format"]


class SourceFormat(str, Enum):
	"""Syntax of a hosts list source."""
	STANDARD = "standard"
	ADBLOCK = "adblock"
	AUTO = "auto"


@dataclass(frozen=True)
class FormatDetection:
	"""Outcome of sampling a source; derived per fetch, never persisted."""
	detected_format: SourceFormat
	confidence: float  # 0-100 for detected_format
	resolved_format: SourceFormat  # What the parser should use
	manual_format: SourceFormat | None = None
	mixed_content: bool = False
	lines_analyzed: int = 0
	adblock_lines: int = 0
	standard_lines: int = 0
	element_lines: int = 0
	allow_lines: int = 0
	adblock_confidence: float = 0.0
	standard_confidence: float = 0.0

	def to_dict(self) -> dict[str, object]:
		return {
			"detected_format": self.detected_format.value,
			"confidence": self.confidence,
			"resolved_format": self.resolved_format.value,
			"manual_format": self.manual_format.value if self.manual_format else None,
			"mixed_content": self.mixed_content,
			"lines_analyzed": self.lines_analyzed,
			"adblock_lines": self.adblock_lines,
			"standard_lines": self.standard_lines,
			"element_lines": self.element_lines,
			"allow_lines": self.allow_lines,
			"adblock_confidence": self.adblock_confidence,
			"standard_confidence": self.standard_confidence,
		}


def _coerce_format(value: SourceFormat | str | None) -> SourceFormat | None:
	if value is None:
		return None
	if isinstance(value, SourceFormat):
		return value
	return SourceFormat(str(value).strip().lower())


def resolve_format(
	detected: SourceFormat,
	confidence: float,
	manual_format: SourceFormat | str | None = None,
	threshold: float = DETECT_CONFIDENCE_THRESHOLD,
) -> SourceFormat:
	"""Pick the format to parse with.

	A pinned manual format (anything but ``auto``) always wins. Otherwise the
	detected format is used when its confidence meets *threshold*; below
	that the result is ``auto``.
	"""
	manual = _coerce_format(manual_format)
	if manual is not None and manual is not SourceFormat.AUTO:
		return manual
	if detected is SourceFormat.AUTO or confidence < threshold:
		return SourceFormat.AUTO
	return detected


def detect_format(
	content: str | None,
	manual_format: SourceFormat | str | None = None,
	threshold: float = DETECT_CONFIDENCE_THRESHOLD,
	*,
	source_id: str = "",
) -> FormatDetection:
	"""Score the first non-comment lines of *content* against both syntaxes.

	Samples at most ``DETECT_SAMPLE_LINES`` non-blank, non-comment lines.
	Confidence of a format is its share of all lines matching either shape.
	A tie (including no matches at all) yields ``auto`` with confidence 0.
	The detection result is computed even when a manual format is pinned.

	Raises:
		ValueError: *manual_format* is not a known ``SourceFormat`` value
	"""
	manual = _coerce_format(manual_format)

	analyzed = 0
	adblock = 0
	standard = 0
	element = 0
	allow = 0
	for raw_line in (content or "").split("\n"):
		if analyzed >= DETECT_SAMPLE_LINES:
			break
		line = raw_line.strip()
		if not line or line.startswith(STANDARD_COMMENT_PREFIXES):
			continue
		analyzed += 1

		if ADBLOCK_SHAPE_RE.search(line):
			adblock += 1
			if line.startswith("@@"):
				allow += 1
		elif STANDARD_SHAPE_RE.match(line):
			standard += 1
		if "##" in line:
			element += 1

	total = adblock + standard
	adblock_conf = round(adblock / total * 100, 2) if total else 0.0
	standard_conf = round(standard / total * 100, 2) if total else 0.0

	if adblock_conf > standard_conf:
		detected, confidence = SourceFormat.ADBLOCK, adblock_conf
	elif standard_conf > adblock_conf:
		detected, confidence = SourceFormat.STANDARD, standard_conf
	else:
		detected, confidence = SourceFormat.AUTO, 0.0

	mixed = bool(adblock and standard) and abs(adblock_conf - standard_conf) < DETECT_MIXED_CONTENT_THRESHOLD
	if mixed:
		_log.info(
			"DETECT mixed content source=%s adblock=%.1f%% standard=%.1f%%",
			source_id or "-", adblock_conf, standard_conf,
		)

	resolved = resolve_format(detected, confidence, manual, threshold)
	_log.debug(
		"DETECT source=%s detected=%s confidence=%.2f resolved=%s",
		source_id or "-", detected.value, confidence, resolved.value,
	)
	return FormatDetection(
		detected_format=detected,
		confidence=confidence,
		resolved_format=resolved,
		manual_format=manual,
		mixed_content=mixed,
		lines_analyzed=analyzed,
		adblock_lines=adblock,
		standard_lines=standard,
		element_lines=element,
		allow_lines=allow,
		adblock_confidence=adblock_conf,
		standard_confidence=standard_conf,
	)
