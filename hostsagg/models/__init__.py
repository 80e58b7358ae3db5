#!/usr/bin/env python3
#
# hostsagg/models/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Pydantic models for hostsagg."""

from .rules import (
	DEFAULT_PRIORITY,
	MAX_PRIORITY,
	MIN_PRIORITY,
	FilterRuleCreate,
	FilterRuleUpdate,
)
from .sources import HostsSource

__all__ = [
	# Rules
	"DEFAULT_PRIORITY",
	"MAX_PRIORITY",
	"MIN_PRIORITY",
	"FilterRuleCreate",
	"FilterRuleUpdate",
	# Sources
	"HostsSource",
]
