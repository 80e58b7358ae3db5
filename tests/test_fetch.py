#!/usr/bin/env python3
#
# tests/test_fetch.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

import asyncio
import tempfile
import unittest
from pathlib import Path

import httpx

from hostsagg.lists.fetch import SourceFetchError, SourceFetcher
from hostsagg.models.sources import HostsSource

URL = "https://lists.example.org/hosts.txt"


def _url_source(source_id: str = "remote") -> HostsSource:
	return HostsSource(id=source_id, name="Remote", url=URL)


class SourceFetcherTests(unittest.TestCase):
	def setUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		self.addCleanup(self._tmp.cleanup)
		self.cache_dir = Path(self._tmp.name) / "cache"
		self.requests = []

	def _fetcher(self, handler, **kwargs) -> SourceFetcher:
		def _record(request):
			self.requests.append(request)
			return handler(request)

		kwargs.setdefault("retry_backoff", 0)
		return SourceFetcher(self.cache_dir, transport=httpx.MockTransport(_record), **kwargs)

	def test_download_then_cache_hit(self):
		fetcher = self._fetcher(lambda r: httpx.Response(200, text="0.0.0.0 a.com\n0.0.0.0 b.com\n"))

		first = asyncio.run(fetcher.fetch(_url_source()))
		second = asyncio.run(fetcher.fetch(_url_source()))

		self.assertEqual(first.text.splitlines(), ["0.0.0.0 a.com", "0.0.0.0 b.com"])
		self.assertFalse(first.cached)
		self.assertTrue(second.cached)
		self.assertEqual(second.text, first.text)
		self.assertEqual(len(self.requests), 1)
		self.assertTrue((self.cache_dir / "remote.txt").is_file())
		self.assertIn("hostsagg", self.requests[0].headers["User-Agent"])

	def test_cache_disabled_and_invalidate(self):
		fetcher = self._fetcher(lambda r: httpx.Response(200, text="0.0.0.0 a.com"), cache_ttl=0)
		asyncio.run(fetcher.fetch(_url_source()))
		asyncio.run(fetcher.fetch(_url_source()))
		self.assertEqual(len(self.requests), 2)

		cached = self._fetcher(lambda r: httpx.Response(200, text="0.0.0.0 a.com"))
		asyncio.run(cached.fetch(_url_source()))
		self.assertEqual(cached.invalidate("remote"), 1)
		self.assertFalse(asyncio.run(cached.fetch(_url_source())).cached)

	def test_server_errors_are_retried_then_raised(self):
		fetcher = self._fetcher(lambda r: httpx.Response(503, text="unavailable"))
		with self.assertRaises(SourceFetchError) as ctx:
			asyncio.run(fetcher.fetch(_url_source()))
		self.assertEqual(ctx.exception.source_id, "remote")
		self.assertEqual(len(self.requests), 3)
		self.assertFalse((self.cache_dir / "remote.txt").exists())

	def test_recovers_on_retry(self):
		responses = [httpx.Response(500), httpx.Response(200, text="0.0.0.0 ok.com")]
		fetcher = self._fetcher(lambda r: responses.pop(0))
		result = asyncio.run(fetcher.fetch(_url_source()))
		self.assertEqual(result.text, "0.0.0.0 ok.com")
		self.assertEqual(len(self.requests), 2)

	def test_rejects_unexpected_content_type(self):
		fetcher = self._fetcher(lambda r: httpx.Response(200, html="<html></html>"))
		with self.assertRaises(SourceFetchError):
			asyncio.run(fetcher.fetch(_url_source()))

	def test_rejects_non_http_url(self):
		source = HostsSource.model_construct(
			id="ftp", name="ftp", type="URL", url="ftp://example.org/hosts", file_path=None, enabled=True, format="auto",
		)
		fetcher = self._fetcher(lambda r: httpx.Response(200, text=""))
		with self.assertRaises(SourceFetchError):
			asyncio.run(fetcher.fetch(source))
		self.assertEqual(self.requests, [])

	def test_file_sources(self):
		path = Path(self._tmp.name) / "local.txt"
		path.write_text("||local.example.com^\n", encoding="utf-8")
		fetcher = SourceFetcher(self.cache_dir)

		result = asyncio.run(fetcher(HostsSource(id="local", name="Local", type="FILE", file_path=str(path))))
		self.assertEqual(result.text, "||local.example.com^\n")
		self.assertFalse(result.cached)

		missing = HostsSource(id="missing", name="Missing", type="FILE", file_path=str(path) + ".nope")
		with self.assertRaises(SourceFetchError):
			asyncio.run(fetcher.fetch(missing))


if __name__ == "__main__":
	unittest.main()
