#!/usr/bin/env python3
#
# hostsagg/utils/time.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Timezone-aware wall clock and monotonic duration helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
	"""Return the current UTC time as a timezone-aware datetime."""
	return datetime.now(timezone.utc)


def isoformat_utc(dt: Optional[datetime]) -> Optional[str]:
	"""Render an aware datetime as ISO-8601 with a ``Z`` suffix."""
	if dt is None:
		return None
	if dt.tzinfo is None:
		raise ValueError("Naive datetime not allowed - must be timezone-aware")
	return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def elapsed_ms(started: float) -> float:
	"""Milliseconds since *started* (a ``time.monotonic()`` reading)."""
	return round((time.monotonic() - started) * 1000.0, 3)
