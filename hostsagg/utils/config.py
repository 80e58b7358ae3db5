#!/usr/bin/env python3
#
# hostsagg/utils/config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Configuration loading and app-level defaults."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path

from ..filtering.executor import RegexTimeouts, clamp_timeout
from ..lists.constants import DETECT_CONFIDENCE_THRESHOLD

_log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
	"""Raised when critical configuration is missing or invalid."""


@dataclass(frozen=True)
class Config:
	"""Resolved runtime configuration derived from env and defaults."""
	base_dir: Path
	data_dir: Path
	db_path: Path
	cache_dir: Path
	output_dir: Path
	sources_file: Path
	rules_file: Path
	log_level: str = "INFO"
	auto_aggregate: bool = True
	settle_delay: float = 1.0
	fetch_timeout: float = 30.0
	cache_ttl: float = 3600.0
	confidence_threshold: float = DETECT_CONFIDENCE_THRESHOLD
	regex_timeout_ms: float = RegexTimeouts.DEFAULT
	include_headers: bool = True


def _parse_value(raw: str) -> str:
	"""Extract value, respecting quotes and stripping inline comments.

	Only unquoted values have inline comments removed.
	"""
	raw = raw.strip()
	if raw and raw[0] in ('"', "'"):
		quote = raw[0]
		end = raw.find(quote, 1)
		if end != -1:
			return raw[1:end]
		# Unterminated quote - fall through to unquoted handling
	if " #" in raw:
		raw = raw.split(" #", 1)[0]
	return raw.strip()


def load_dotenv(dotenv_path: Path | None = None) -> None:
	"""Load simple KEY=VALUE pairs from settings.env.

	Behavior:
	- Ignores blank lines and comments (# ...)
	- Handles `export KEY=VALUE` syntax (common in shell-sourced files)
	- Respects quoted values (doesn't strip # inside quotes)
	- Does not override already-set environment variables
	"""
	project_root = Path(__file__).resolve().parents[2]
	dotenv_path = dotenv_path or (project_root / "settings.env")
	if not dotenv_path.exists():
		return
	for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
		line = raw_line.strip()
		if not line or line.startswith("#"):
			continue
		if "=" not in line:
			continue
		key, value = line.split("=", 1)
		key = key.strip()

		if key.startswith("export "):
			key = key[7:].strip()

		value = _parse_value(value)
		if not key:
			continue
		os.environ.setdefault(key, value)


def _env_bool(name: str, default: bool) -> bool:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	value = raw.strip().lower()
	if value in {"1", "true", "yes", "on"}:
		return True
	if value in {"0", "false", "no", "off"}:
		return False
	raise ConfigValidationError(f"{name} must be a boolean, got {raw!r}")


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	try:
		value = float(raw)
	except ValueError as exc:
		raise ConfigValidationError(f"{name} must be a number, got {raw!r}") from exc
	if value < minimum:
		raise ConfigValidationError(f"{name} must be ≥ {minimum}, got {value}")
	return value


def load_config(dotenv_path: Path | None = None) -> Config:
	"""Load configuration from environment variables (optionally via settings.env)."""
	load_dotenv(dotenv_path)
	project_root = Path(__file__).resolve().parents[2]

	data_dir = Path(os.getenv("HOSTSAGG_DATA_DIR", str(project_root / "data"))).resolve()
	db_path = (data_dir / "hostsagg.db").resolve()
	cache_dir = (data_dir / "cache").resolve()
	output_dir = (data_dir / "output").resolve()
	sources_file = Path(os.getenv("HOSTSAGG_SOURCES_FILE", str(data_dir / "sources.json"))).resolve()
	rules_file = Path(os.getenv("HOSTSAGG_RULES_FILE", str(data_dir / "rules.json"))).resolve()

	# Self-healing: Ensure directories exist
	try:
		for d in (data_dir, cache_dir, output_dir):
			if d.exists() and not d.is_dir():
				raise ConfigValidationError(f"Path exists but is not a directory: {d}")
			d.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		raise ConfigValidationError(f"Cannot create data directories: {exc}") from exc

	allowed_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
	log_level = os.getenv("LOG_LEVEL", "INFO").upper()
	if log_level not in allowed_levels:
		log_level = "INFO"

	threshold = _env_float("HOSTSAGG_CONFIDENCE_THRESHOLD", DETECT_CONFIDENCE_THRESHOLD)
	if threshold > 100:
		_log.warning("HOSTSAGG_CONFIDENCE_THRESHOLD %.1f clamped to 100", threshold)
		threshold = 100.0

	regex_timeout_ms = _env_float("HOSTSAGG_REGEX_TIMEOUT_MS", RegexTimeouts.DEFAULT, minimum=1.0)

	return Config(
		base_dir=project_root,
		data_dir=data_dir,
		db_path=db_path,
		cache_dir=cache_dir,
		output_dir=output_dir,
		sources_file=sources_file,
		rules_file=rules_file,
		log_level=log_level,
		auto_aggregate=_env_bool("HOSTSAGG_AUTO_AGGREGATE", True),
		settle_delay=_env_float("HOSTSAGG_SETTLE_DELAY", 1.0),
		fetch_timeout=_env_float("HOSTSAGG_FETCH_TIMEOUT", 30.0, minimum=1.0),
		cache_ttl=_env_float("HOSTSAGG_CACHE_TTL", 3600.0),
		confidence_threshold=threshold,
		regex_timeout_ms=clamp_timeout(regex_timeout_ms),
		include_headers=_env_bool("HOSTSAGG_INCLUDE_HEADERS", True),
	)


# Global config singleton with thread-safe lazy initialization
_config: Config | None = None
_config_lock = threading.Lock()


def get_config() -> Config:
	"""Get the global config singleton (thread-safe)."""
	global _config
	if _config is None:
		with _config_lock:
			if _config is None:  # Double-checked locking
				_config = load_config()
	return _config


def reset_config() -> None:
	"""Reset the cached config. Intended for tests only."""
	global _config
	with _config_lock:
		_config = None
