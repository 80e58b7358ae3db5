#!/usr/bin/env python3
#
# hostsagg/models/sources.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Hosts list source Pydantic models."""

from __future__ import annotations

import re
import urllib.parse
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

_SOURCE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


class HostsSource(BaseModel):
	"""A block/allow list source handed to the aggregation engine."""
	id: str = Field(..., min_length=1, max_length=128)
	name: str = Field(..., min_length=1, max_length=255)
	type: Literal["URL", "FILE"] = "URL"
	url: Optional[str] = Field(None, max_length=2048)
	file_path: Optional[str] = Field(None, max_length=4096)
	enabled: bool = True
	format: Literal["standard", "adblock", "auto"] = "auto"

	@field_validator("id")
	@classmethod
	def validate_id(cls, v: str) -> str:
		if not _SOURCE_ID_RE.match(v):
			raise ValueError("Source id must be alphanumeric and may contain _ . -")
		return v

	@field_validator("format", mode="before")
	@classmethod
	def normalize_format(cls, v: object) -> object:
		if isinstance(v, str):
			return v.strip().lower()
		return v

	@model_validator(mode="after")
	def check_location(self) -> "HostsSource":
		if self.type == "URL":
			if not self.url:
				raise ValueError("URL sources require 'url'")
			parsed = urllib.parse.urlparse(self.url)
			if parsed.scheme not in ("http", "https") or not parsed.netloc:
				raise ValueError("Source URL must be http(s)")
		elif not self.file_path:
			raise ValueError("FILE sources require 'file_path'")
		return self
