#!/usr/bin/env python3
#
# hostsagg/models/rules.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Filter rule Pydantic models."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

MIN_PRIORITY = 1
MAX_PRIORITY = 1000
DEFAULT_PRIORITY = 100

RuleTypeName = Literal["block", "allow", "wildcard", "regex"]


class FilterRuleCreate(BaseModel):
	"""Filter rule creation payload (also the import/export shape)."""
	pattern: str = Field(..., min_length=1, max_length=1000)
	type: RuleTypeName
	priority: int = Field(default=DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
	enabled: bool = True
	source_id: Optional[str] = Field(None, max_length=128)

	@field_validator("pattern")
	@classmethod
	def strip_pattern(cls, v: str) -> str:
		v = v.strip()
		if not v:
			raise ValueError("Pattern must not be blank")
		return v


class FilterRuleUpdate(BaseModel):
	"""Filter rule update payload; unset fields are left unchanged."""
	pattern: Optional[str] = Field(None, min_length=1, max_length=1000)
	type: Optional[RuleTypeName] = None
	priority: Optional[int] = Field(None, ge=MIN_PRIORITY, le=MAX_PRIORITY)
	enabled: Optional[bool] = None
	source_id: Optional[str] = Field(None, max_length=128)
