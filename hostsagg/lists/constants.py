#!/usr/bin/env python3
#
# hostsagg/lists/constants.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Hosts list constants and shared utilities."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import IO

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Download limits
# ---------------------------------------------------------------------------

SOURCE_MAX_BYTES = 50 * 1024 * 1024
SOURCE_MAX_LINES = 3_000_000
FETCH_MAX_ATTEMPTS = 3
USER_AGENT = "hostsagg/1.0 Hosts-Aggregator"

# Allowed content types for source downloads
ALLOWED_SOURCE_CONTENT_TYPES: frozenset[str] = frozenset({
	"",  # Servers that omit Content-Type (e.g. raw.githubusercontent.com)
	"text/plain",
	"text/x-hosts",
	"application/octet-stream",
})

# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

MAX_DOMAIN_LENGTH = 253
DOMAIN_LABEL_RE = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$")

# Lines starting with these are never entries
STANDARD_COMMENT_PREFIXES = ("#", "!", "[")
ADBLOCK_COMMENT_PREFIXES = ("!", "[")

# Names that appear in every stock /etc/hosts and must never be aggregated
LOCAL_HOSTNAMES: frozenset[str] = frozenset({
	"localhost",
	"localhost.localdomain",
	"local",
	"broadcasthost",
	"ip6-localhost",
	"ip6-loopback",
	"ip6-localnet",
	"ip6-mcastprefix",
	"ip6-allnodes",
	"ip6-allrouters",
	"ip6-allhosts",
})

# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------

DETECT_SAMPLE_LINES = 100
DETECT_CONFIDENCE_THRESHOLD = 60.0
DETECT_MIXED_CONTENT_THRESHOLD = 10.0

ADBLOCK_SHAPE_RE = re.compile(r"\|\|[^/\s]+\^")
STANDARD_SHAPE_RE = re.compile(r"^(?:0\.0\.0\.0|127\.0\.0\.1)\s+")

# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

HOSTS_OUTPUT_FILE = "hosts.txt"
ADBLOCK_OUTPUT_FILE = "adblock.txt"
BLOCK_ADDRESS = "0.0.0.0"


@contextlib.contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Generator[IO[str], None, None]:
	"""Context manager for atomic file writes with fsync.

	Yields a file handle for writing. On successful exit, the file is
	fsync'd and atomically moved to the target path.

	Example:
		with atomic_write(path) as f:
			f.write("0.0.0.0 example.com\\n")
	"""
	path.parent.mkdir(parents=True, exist_ok=True)
	fd, tmp_path = tempfile.mkstemp(
		dir=str(path.parent),
		prefix=f".{path.name}.",
		suffix=".tmp",
	)
	try:
		with os.fdopen(fd, "w", encoding=encoding) as f:
			yield f
			f.flush()
			os.fsync(f.fileno())
		os.replace(tmp_path, path)
	finally:
		with contextlib.suppress(OSError):
			if os.path.exists(tmp_path):
				os.unlink(tmp_path)


def atomic_write_text(path: Path, content: str) -> None:
	"""Atomically write UTF-8 text to a file (convenience wrapper)."""
	with atomic_write(path) as f:
		f.write(content)


__all__ = [
	"SOURCE_MAX_BYTES",
	"SOURCE_MAX_LINES",
	"FETCH_MAX_ATTEMPTS",
	"USER_AGENT",
	"ALLOWED_SOURCE_CONTENT_TYPES",
	"MAX_DOMAIN_LENGTH",
	"DOMAIN_LABEL_RE",
	"STANDARD_COMMENT_PREFIXES",
	"ADBLOCK_COMMENT_PREFIXES",
	"LOCAL_HOSTNAMES",
	"DETECT_SAMPLE_LINES",
	"DETECT_CONFIDENCE_THRESHOLD",
	"DETECT_MIXED_CONTENT_THRESHOLD",
	"ADBLOCK_SHAPE_RE",
	"STANDARD_SHAPE_RE",
	"HOSTS_OUTPUT_FILE",
	"ADBLOCK_OUTPUT_FILE",
	"BLOCK_ADDRESS",
	"atomic_write",
	"atomic_write_text",
]
