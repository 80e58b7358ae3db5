#!/usr/bin/env python3
#
# tests/test_config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from hostsagg.utils.config import ConfigValidationError, get_config, load_config, load_dotenv, reset_config


class ConfigTests(unittest.TestCase):
	def setUp(self):
		self._tmp = tempfile.TemporaryDirectory()
		self.addCleanup(self._tmp.cleanup)
		self.root = Path(self._tmp.name)
		self.no_dotenv = self.root / "absent.env"

	def _env(self, **values):
		env = {"HOSTSAGG_DATA_DIR": str(self.root / "data")}
		env.update(values)
		return mock.patch.dict(os.environ, env, clear=True)

	def test_defaults(self):
		with self._env():
			cfg = load_config(self.no_dotenv)
		self.assertEqual(cfg.data_dir, (self.root / "data").resolve())
		self.assertTrue(cfg.cache_dir.is_dir())
		self.assertTrue(cfg.output_dir.is_dir())
		self.assertEqual(cfg.sources_file.name, "sources.json")
		self.assertEqual(cfg.log_level, "INFO")
		self.assertTrue(cfg.auto_aggregate)
		self.assertEqual(cfg.confidence_threshold, 60)
		self.assertEqual(cfg.regex_timeout_ms, 1000)

	def test_overrides_and_clamps(self):
		with self._env(
			LOG_LEVEL="debug",
			HOSTSAGG_AUTO_AGGREGATE="off",
			HOSTSAGG_CONFIDENCE_THRESHOLD="150",
			HOSTSAGG_REGEX_TIMEOUT_MS="99999",
			HOSTSAGG_SETTLE_DELAY="0",
		):
			cfg = load_config(self.no_dotenv)
		self.assertEqual(cfg.log_level, "DEBUG")
		self.assertFalse(cfg.auto_aggregate)
		self.assertEqual(cfg.confidence_threshold, 100)
		self.assertEqual(cfg.regex_timeout_ms, 5000)
		self.assertEqual(cfg.settle_delay, 0)

	def test_invalid_values(self):
		for key, value in (
			("HOSTSAGG_AUTO_AGGREGATE", "maybe"),
			("HOSTSAGG_CACHE_TTL", "soon"),
			("HOSTSAGG_SETTLE_DELAY", "-1"),
		):
			with self.subTest(key=key), self._env(**{key: value}):
				with self.assertRaises(ConfigValidationError):
					load_config(self.no_dotenv)

	def test_data_dir_must_be_directory(self):
		blocker = self.root / "file"
		blocker.write_text("x", encoding="utf-8")
		with self._env(HOSTSAGG_DATA_DIR=str(blocker)):
			with self.assertRaises(ConfigValidationError):
				load_config(self.no_dotenv)

	def test_get_config_is_cached_until_reset(self):
		reset_config()
		self.addCleanup(reset_config)
		with self._env(LOG_LEVEL="ERROR"), mock.patch("hostsagg.utils.config.load_dotenv"):
			first = get_config()
			self.assertIs(get_config(), first)
			os.environ["LOG_LEVEL"] = "DEBUG"
			self.assertEqual(get_config().log_level, "ERROR")
			reset_config()
			self.assertEqual(get_config().log_level, "DEBUG")

	def test_dotenv(self):
		dotenv = self.root / "settings.env"
		dotenv.write_text(
			"# comment\n"
			"export LOG_LEVEL=WARNING\n"
			"HOSTSAGG_CACHE_TTL=60 # one minute\n"
			"HOSTSAGG_RULES_FILE='/tmp/rules #1.json'\n"
			"HOSTSAGG_FETCH_TIMEOUT=5\n"
			"garbage line\n",
			encoding="utf-8",
		)
		with self._env(HOSTSAGG_FETCH_TIMEOUT="10"):
			load_dotenv(dotenv)
			self.assertEqual(os.environ["LOG_LEVEL"], "WARNING")
			self.assertEqual(os.environ["HOSTSAGG_CACHE_TTL"], "60")
			self.assertEqual(os.environ["HOSTSAGG_RULES_FILE"], "/tmp/rules #1.json")
			self.assertEqual(os.environ["HOSTSAGG_FETCH_TIMEOUT"], "10")


if __name__ == "__main__":
	unittest.main()
