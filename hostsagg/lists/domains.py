#!/usr/bin/env python3
#
# hostsagg/lists/domains.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""DNS domain name validation."""

from __future__ import annotations

import ipaddress

from .constants import DOMAIN_LABEL_RE, LOCAL_HOSTNAMES, MAX_DOMAIN_LENGTH

__all__ = [
	"is_valid_domain",
	"is_valid_adblock_domain",
	"is_ip_address",
	"is_local_hostname",
]


def _labels(domain: object) -> list[str] | None:
	"""Split *domain* into labels if it is a syntactically valid name."""
	if not isinstance(domain, str):
		return None
	if not domain or len(domain) > MAX_DOMAIN_LENGTH:
		return None
	labels = domain.split(".")
	for label in labels:
		# fullmatch also rejects empty labels, leading/trailing '-' and >63 chars
		if not DOMAIN_LABEL_RE.fullmatch(label):
			return None
	return labels


def is_valid_domain(domain: object) -> bool:
	"""Return True if *domain* is a syntactically valid DNS name.

	Labels are 1-63 characters of ``[a-zA-Z0-9-]`` that neither start nor end
	with ``-``; the whole name is at most 253 characters. Single-label names
	are accepted. Never raises.
	"""
	return _labels(domain) is not None


def is_valid_adblock_domain(domain: object) -> bool:
	"""Stricter variant for adblock patterns: requires at least two labels.

	``||token^`` without a dot is rarely a real domain, so bare words are
	rejected.
	"""
	labels = _labels(domain)
	return labels is not None and len(labels) >= 2


def is_ip_address(token: str) -> bool:
	"""Return True if *token* parses as an IPv4 or IPv6 address."""
	try:
		ipaddress.ip_address(token)
	except ValueError:
		return False
	return True


def is_local_hostname(domain: str) -> bool:
	"""Return True for names shipped in stock hosts files (localhost & co)."""
	return domain.lower() in LOCAL_HOSTNAMES
