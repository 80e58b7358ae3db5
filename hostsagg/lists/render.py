#!/usr/bin/env python3
#
# hostsagg/lists/render.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Output renderers for aggregated block/allow sets."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from ..utils.time import isoformat_utc, utcnow
from .constants import ADBLOCK_OUTPUT_FILE, BLOCK_ADDRESS, HOSTS_OUTPUT_FILE, atomic_write

if TYPE_CHECKING:
	from .aggregation import AggregationOutcome

_log = logging.getLogger(__name__)

__all__ = ["render_standard_hosts", "render_adblock", "write_outputs"]


def render_standard_hosts(
	blocked: Sequence[str],
	source_count: int,
	*,
	include_header: bool = True,
	generated_at: datetime | None = None,
) -> str:
	"""Render ``0.0.0.0 <domain>`` lines, optionally behind a ``#`` banner."""
	lines: list[str] = []
	if include_header:
		lines += [
			"# Unified Hosts File",
			f"# Generated: {isoformat_utc(generated_at or utcnow())}",
		]
		if not blocked:
			lines += ["# No domains aggregated", "#", "# Add and enable sources to populate this file", "#"]
		else:
			lines += [f"# Total domains: {len(blocked)}", f"# Sources: {source_count}", ""]
	lines += [f"{BLOCK_ADDRESS} {domain}" for domain in blocked]
	return "\n".join(lines) + "\n"


def render_adblock(
	blocked: Sequence[str],
	allowed: Sequence[str] = (),
	source_count: int = 0,
	*,
	include_header: bool = True,
	generated_at: datetime | None = None,
) -> str:
	"""Render ``||d^`` block and ``@@||d^`` exception lines."""
	lines: list[str] = []
	if include_header:
		lines += [
			"[Adblock Plus 2.0]",
			"! Unified Hosts File - ABP Format",
			f"! Generated: {isoformat_utc(generated_at or utcnow())}",
			f"! Total domains: {len(blocked)}",
			f"! Sources: {source_count}",
			"!",
		]
		if not blocked and not allowed:
			lines += ["! Add and enable sources to populate this file", "!"]
		else:
			lines += ["! This file uses AdBlock Plus format (||domain^)", "!", ""]
	lines += [f"||{domain}^" for domain in blocked]
	lines += [f"@@||{domain}^" for domain in allowed]
	return "\n".join(lines) + "\n"


def write_outputs(
	outcome: AggregationOutcome,
	output_dir: Path,
	*,
	include_header: bool = True,
) -> dict[str, Path]:
	"""Write ``hosts.txt`` and ``adblock.txt`` atomically; returns the paths."""
	generated_at = utcnow()
	hosts_path = Path(output_dir) / HOSTS_OUTPUT_FILE
	adblock_path = Path(output_dir) / ADBLOCK_OUTPUT_FILE

	with atomic_write(hosts_path) as f:
		f.write(render_standard_hosts(
			outcome.blocked_domains, outcome.total_sources,
			include_header=include_header, generated_at=generated_at,
		))
	with atomic_write(adblock_path) as f:
		f.write(render_adblock(
			outcome.blocked_domains, outcome.allowed_domains, outcome.total_sources,
			include_header=include_header, generated_at=generated_at,
		))

	_log.info("AGGREGATE wrote %d domains to %s", outcome.unique_entries, output_dir)
	return {"standard": hosts_path, "adblock": adblock_path}
