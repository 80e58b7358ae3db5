#!/usr/bin/env python3
#
# hostsagg/lists/parser.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Hosts list parser for standard hosts and adblock (ABP) syntax."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .constants import ADBLOCK_COMMENT_PREFIXES, BLOCK_ADDRESS, STANDARD_COMMENT_PREFIXES
from .domains import is_ip_address, is_local_hostname, is_valid_adblock_domain, is_valid_domain

_log = logging.getLogger(__name__)

__all__ = [
	"EntryKind",
	"ParsedEntry",
	"parse_standard_hosts",
	"parse_adblock",
	"parse_adblock_line",
	"parse_content",
	"to_adblock_lines",
	"to_standard_lines",
]


class EntryKind(str, Enum):
	"""What a parsed entry means for DNS filtering."""
	BLOCK = "block"
	ALLOW = "allow"
	ELEMENT = "element"  # cosmetic rule, kept only for adblock output


@dataclass(frozen=True)
class ParsedEntry:
	"""Canonical entry produced by parsing one source line."""
	domain: str  # Validated DNS name, case preserved
	source_id: str  # Opaque id of the originating source
	kind: EntryKind
	line_number: int  # 1-based line in the source text
	raw_pattern: str | None = None  # Original line for adblock-origin entries

	def __post_init__(self) -> None:
		if not self.domain:
			raise ValueError("ParsedEntry.domain must not be empty")
		if self.kind is EntryKind.ELEMENT and not self.raw_pattern:
			raise ValueError("element entries require raw_pattern")


# ---------------------------------------------------------------------------
# Standard hosts format
# ---------------------------------------------------------------------------

def parse_standard_hosts(content: str, source_id: str) -> list[ParsedEntry]:
	"""Parse ``<ip> <domain> [domain...]`` lines into block entries.

	The address column is ignored. A single line may yield several entries.
	Parsing stops at an inline ``#`` comment; IP literals and stock local
	names (``localhost``, ``broadcasthost``...) are skipped.
	"""
	entries: list[ParsedEntry] = []
	for line_number, raw_line in enumerate(content.split("\n"), start=1):
		line = raw_line.strip()
		if not line or line.startswith(STANDARD_COMMENT_PREFIXES):
			continue

		parts = line.split()
		for token in parts[1:]:
			if token.startswith("#"):
				break
			if not is_valid_domain(token) or is_ip_address(token) or is_local_hostname(token):
				continue
			entries.append(ParsedEntry(
				domain=token,
				source_id=source_id,
				kind=EntryKind.BLOCK,
				line_number=line_number,
			))
	return entries


# ---------------------------------------------------------------------------
# Adblock format
# ---------------------------------------------------------------------------

def parse_adblock_line(line: str) -> tuple[EntryKind, str] | None:
	"""Classify one trimmed adblock line.

	Returns ``(kind, domain)`` or None when the line is not a recognized
	DNS-relevant rule. Precedence: element hiding, then network rules.
	"""
	# Element hiding: example.com##.selector
	if "##" in line:
		domain = line.split("##", 1)[0].strip()
		if is_valid_adblock_domain(domain):
			return EntryKind.ELEMENT, domain
		return None

	# Network rule: ||domain^ or @@||domain^
	if not (line.startswith("||") or line.startswith("@@||")) or not line.endswith("^"):
		return None

	kind = EntryKind.BLOCK
	body = line
	if body.startswith("@@"):
		kind = EntryKind.ALLOW
		body = body[2:]

	token = body[2:]
	for stop in ("/", "^"):
		idx = token.find(stop)
		if idx != -1:
			token = token[:idx]

	# ||*.example.com^ collapses to its base domain
	if token.startswith("*"):
		token = token.lstrip("*")
		if token.startswith("."):
			token = token[1:]

	if not is_valid_adblock_domain(token):
		return None
	return kind, token


def parse_adblock(content: str, source_id: str) -> list[ParsedEntry]:
	"""Parse adblock/ABP rules; unrecognized lines are skipped silently."""
	entries: list[ParsedEntry] = []
	for line_number, raw_line in enumerate(content.split("\n"), start=1):
		line = raw_line.strip()
		if not line or line.startswith(ADBLOCK_COMMENT_PREFIXES):
			continue

		result = parse_adblock_line(line)
		if result is None:
			continue
		kind, domain = result
		entries.append(ParsedEntry(
			domain=domain,
			source_id=source_id,
			kind=kind,
			line_number=line_number,
			raw_pattern=line,
		))
	return entries


def parse_content(content: str | None, source_id: str, fmt: str = "standard") -> list[ParsedEntry]:
	"""Parse *content* in the given format; never raises.

	``auto`` (no pinned format) parses as standard hosts. Any internal
	failure is logged and yields an empty list.
	"""
	if not content:
		return []
	try:
		fmt_value = getattr(fmt, "value", fmt)
		if fmt_value == "adblock":
			return parse_adblock(content, source_id)
		return parse_standard_hosts(content, source_id)
	except Exception:
		_log.exception("PARSE failed for source=%s format=%s", source_id, fmt)
		return []


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def to_adblock_lines(entries: Iterable[ParsedEntry]) -> list[str]:
	"""Render entries as ABP lines (``||d^``, ``@@||d^``, stored element rule)."""
	lines: list[str] = []
	for entry in entries:
		if entry.kind is EntryKind.ALLOW:
			lines.append(f"@@||{entry.domain}^")
		elif entry.kind is EntryKind.ELEMENT:
			lines.append(entry.raw_pattern or f"{entry.domain}##")
		else:
			lines.append(f"||{entry.domain}^")
	return lines


def to_standard_lines(entries: Iterable[ParsedEntry]) -> list[str]:
	"""Render entries as hosts lines; element rules have no DNS equivalent."""
	lines: list[str] = []
	for entry in entries:
		if entry.kind is EntryKind.ELEMENT:
			continue
		if entry.kind is EntryKind.ALLOW:
			lines.append(entry.domain)
		else:
			lines.append(f"{BLOCK_ADDRESS} {entry.domain}")
	return lines
