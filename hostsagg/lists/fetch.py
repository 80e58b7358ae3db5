#!/usr/bin/env python3
#
# hostsagg/lists/fetch.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Source content retrieval: HTTP downloads, local files and an on-disk cache."""

from __future__ import annotations

import asyncio
import logging
import time
import urllib.parse
from dataclasses import dataclass
from pathlib import Path

import httpx

from ..models.sources import HostsSource
from .constants import (
	ALLOWED_SOURCE_CONTENT_TYPES,
	FETCH_MAX_ATTEMPTS,
	SOURCE_MAX_BYTES,
	SOURCE_MAX_LINES,
	USER_AGENT,
	atomic_write_text,
)

_log = logging.getLogger(__name__)

__all__ = ["FetchedContent", "SourceFetchError", "SourceFetcher"]


class SourceFetchError(Exception):
	"""A source could not be retrieved."""

	def __init__(self, source_id: str, message: str) -> None:
		super().__init__(message)
		self.source_id = source_id


class _CapacityExceeded(Exception):
	"""Size or line cap hit; retrying cannot help."""


@dataclass(frozen=True)
class FetchedContent:
	text: str
	cached: bool = False


class SourceFetcher:
	"""Fetch collaborator for ``AggregationEngine``.

	URL sources are streamed with ``httpx`` (content-type allow-list, byte and
	line caps, retries with exponential backoff). FILE sources are read from
	disk. Downloads are cached under ``cache_dir/<source id>.txt`` and served
	from there while younger than ``cache_ttl`` seconds.
	"""

	def __init__(
		self,
		cache_dir: Path | None = None,
		*,
		timeout: float = 30.0,
		cache_ttl: float = 3600.0,
		retry_backoff: float = 1.0,
		transport: httpx.AsyncBaseTransport | None = None,
	) -> None:
		self.cache_dir = Path(cache_dir) if cache_dir is not None else None
		self.timeout = timeout
		self.cache_ttl = cache_ttl
		self.retry_backoff = retry_backoff
		self._transport = transport

	async def __call__(self, source: HostsSource) -> FetchedContent:
		return await self.fetch(source)

	# -- cache --------------------------------------------------------------

	def _cache_path(self, source_id: str) -> Path | None:
		if self.cache_dir is None:
			return None
		return self.cache_dir / f"{source_id}.txt"

	def _read_cache(self, source_id: str) -> str | None:
		path = self._cache_path(source_id)
		if path is None or self.cache_ttl <= 0:
			return None
		try:
			age = time.time() - path.stat().st_mtime
			if age >= self.cache_ttl:
				return None
			return path.read_text(encoding="utf-8")
		except OSError:
			return None

	def _write_cache(self, source_id: str, text: str) -> None:
		path = self._cache_path(source_id)
		if path is None or self.cache_ttl <= 0:
			return
		try:
			atomic_write_text(path, text)
		except OSError as e:
			_log.warning("FETCH could not cache %s: %s", source_id, e)

	def invalidate(self, source_id: str | None = None) -> int:
		"""Drop cached content for one source, or all sources when None."""
		if self.cache_dir is None or not self.cache_dir.is_dir():
			return 0
		paths = [self.cache_dir / f"{source_id}.txt"] if source_id else list(self.cache_dir.glob("*.txt"))
		removed = 0
		for path in paths:
			try:
				path.unlink()
				removed += 1
			except FileNotFoundError:
				pass
		return removed

	# -- retrieval ----------------------------------------------------------

	async def _download(self, client: httpx.AsyncClient, url: str) -> str:
		"""Stream one URL into text, enforcing caps."""
		line_count = 0
		size_bytes = 0
		lines: list[str] = []

		async with client.stream("GET", url) as resp:
			resp.raise_for_status()
			content_type = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
			if content_type not in ALLOWED_SOURCE_CONTENT_TYPES:
				raise ValueError(f"Unsupported content type: {content_type!r}")

			content_length = resp.headers.get("Content-Length")
			if content_length and content_length.isdigit() and int(content_length) > SOURCE_MAX_BYTES:
				raise _CapacityExceeded(f"Source too large ({content_length} bytes)")

			async for raw_line in resp.aiter_lines():
				line_count += 1
				size_bytes += len(raw_line.encode("utf-8", errors="ignore")) + 1
				if line_count > SOURCE_MAX_LINES:
					raise _CapacityExceeded(f"Source line limit exceeded ({SOURCE_MAX_LINES})")
				if size_bytes > SOURCE_MAX_BYTES:
					raise _CapacityExceeded(f"Source size limit exceeded ({SOURCE_MAX_BYTES} bytes)")
				lines.append(raw_line)

		return "\n".join(lines)

	async def _fetch_url(self, source: HostsSource) -> str:
		url = source.url or ""
		parsed = urllib.parse.urlparse(url)
		if parsed.scheme not in ("http", "https") or not parsed.netloc:
			raise SourceFetchError(source.id, f"Rejected non-HTTP URL: {url}")

		last_error: Exception | None = None
		async with httpx.AsyncClient(
			timeout=self.timeout,
			follow_redirects=True,
			headers={"User-Agent": USER_AGENT},
			transport=self._transport,
		) as client:
			# Retry with exponential backoff
			for attempt in range(FETCH_MAX_ATTEMPTS):
				try:
					return await self._download(client, url)
				except _CapacityExceeded as e:
					raise SourceFetchError(source.id, str(e)) from e
				except (httpx.HTTPError, ValueError) as e:
					last_error = e
					if attempt < FETCH_MAX_ATTEMPTS - 1:
						wait = self.retry_backoff * (2 ** attempt)
						_log.debug("FETCH retry %d for %s in %.1fs: %s", attempt + 1, source.id, wait, e)
						await asyncio.sleep(wait)
		raise SourceFetchError(source.id, f"Failed to fetch {url}: {last_error}") from last_error

	def _read_file(self, source: HostsSource) -> str:
		path = Path(source.file_path or "")
		try:
			if path.stat().st_size > SOURCE_MAX_BYTES:
				raise SourceFetchError(source.id, f"Source too large ({path.stat().st_size} bytes)")
			return path.read_text(encoding="utf-8", errors="replace")
		except OSError as e:
			raise SourceFetchError(source.id, f"Failed to read {path}: {e}") from e

	async def fetch(self, source: HostsSource) -> FetchedContent:
		"""Return the content of *source*.

		Raises:
			SourceFetchError: the source could not be retrieved
		"""
		if source.type == "FILE":
			text = await asyncio.to_thread(self._read_file, source)
			return FetchedContent(text=text)

		cached = await asyncio.to_thread(self._read_cache, source.id)
		if cached is not None:
			_log.debug("FETCH cache hit for %s", source.id)
			return FetchedContent(text=cached, cached=True)

		text = await self._fetch_url(source)
		await asyncio.to_thread(self._write_cache, source.id, text)
		return FetchedContent(text=text)
