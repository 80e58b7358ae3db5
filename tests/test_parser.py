#!/usr/bin/env python3
#
# tests/test_parser.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

import unittest

from hostsagg.lists.detector import SourceFormat
from hostsagg.lists.domains import is_valid_domain
from hostsagg.lists.parser import (
	EntryKind,
	ParsedEntry,
	parse_adblock,
	parse_adblock_line,
	parse_content,
	parse_standard_hosts,
	to_adblock_lines,
	to_standard_lines,
)

HOSTS = """\
# Title: test list
127.0.0.1 localhost
::1 ip6-localhost

0.0.0.0 ads.example.com tracker.example.com  # two on one line
0.0.0.0 bad_domain.com
! not a hosts line
[section]
0.0.0.0 Mixed.Case.COM
0.0.0.0 1.2.3.4
"""


class StandardHostsParserTests(unittest.TestCase):
	def test_multi_domain_lines_and_comments(self):
		entries = parse_standard_hosts(HOSTS, "src-a")
		self.assertEqual(
			[(e.domain, e.line_number) for e in entries],
			[("ads.example.com", 5), ("tracker.example.com", 5), ("Mixed.Case.COM", 9)],
		)
		for entry in entries:
			self.assertIs(entry.kind, EntryKind.BLOCK)
			self.assertEqual(entry.source_id, "src-a")
			self.assertIsNone(entry.raw_pattern)
			self.assertTrue(is_valid_domain(entry.domain))

	def test_address_column_is_not_validated(self):
		entries = parse_standard_hosts("not-an-ip example.com\n", "s")
		self.assertEqual([e.domain for e in entries], ["example.com"])

	def test_crlf_content(self):
		entries = parse_standard_hosts("0.0.0.0 a.com\r\n0.0.0.0 b.com\r\n", "s")
		self.assertEqual([e.domain for e in entries], ["a.com", "b.com"])


class AdblockParserTests(unittest.TestCase):
	def test_rule_kinds(self):
		content = "\n".join([
			"[Adblock Plus 2.0]",
			"! comment",
			"||ads.example.com^",
			"@@||good.example.com^",
			"example.com##.banner",
			"||example.org/path^",
			"||localword^",
			"/regex-like/",
			"##.generic-selector",
			"||ads.example.net^$third-party",
		])
		entries = parse_adblock(content, "abp")
		self.assertEqual(
			[(e.kind, e.domain, e.line_number) for e in entries],
			[
				(EntryKind.BLOCK, "ads.example.com", 3),
				(EntryKind.ALLOW, "good.example.com", 4),
				(EntryKind.ELEMENT, "example.com", 5),
				(EntryKind.BLOCK, "example.org", 6),
			],
		)
		self.assertEqual(entries[2].raw_pattern, "example.com##.banner")

	def test_wildcard_prefix_collapses_to_base_domain(self):
		self.assertEqual(parse_adblock_line("||*.example.com^"), (EntryKind.BLOCK, "example.com"))
		self.assertEqual(parse_adblock_line("@@||*.example.com^"), (EntryKind.ALLOW, "example.com"))
		self.assertIsNone(parse_adblock_line("||*^"))

	def test_network_rule_requires_trailing_caret(self):
		self.assertIsNone(parse_adblock_line("||example.com"))
		self.assertIsNone(parse_adblock_line("|example.com^"))

	def test_round_trip_block_and_allow_lines(self):
		lines = ["||blocked.com^", "@@||allowed.com^", "||sub.blocked.com^", "example.com##div.ad"]
		entries = parse_adblock("\n".join(lines), "abp")
		self.assertEqual(to_adblock_lines(entries), lines)

	def test_adblock_to_standard_conversion(self):
		entries = parse_adblock("||blocked.com^\n@@||allowed.com^\nexample.com##div.ad", "abp")
		self.assertEqual(to_standard_lines(entries), ["0.0.0.0 blocked.com", "allowed.com"])


class ParseContentTests(unittest.TestCase):
	def test_dispatch_by_format(self):
		self.assertEqual(len(parse_content("||a.com^", "s", "adblock")), 1)
		self.assertEqual(parse_content("||a.com^", "s", "standard"), [])
		self.assertEqual(len(parse_content("0.0.0.0 a.com", "s", SourceFormat.STANDARD)), 1)
		self.assertEqual(len(parse_content("0.0.0.0 a.com", "s", "auto")), 1)

	def test_never_raises(self):
		for content in (None, "", "\\x00\\x01garbage", "||^", "@@", "##", 12345, b"0.0.0.0 a.com"):
			for fmt in ("standard", "adblock"):
				with self.subTest(content=content, fmt=fmt):
					self.assertEqual(parse_content(content, "s", fmt), [])

	def test_entries_are_immutable(self):
		entry = parse_content("0.0.0.0 a.com", "s")[0]
		with self.assertRaises(AttributeError):
			entry.domain = "b.com"  # type: ignore[misc]

	def test_entry_invariants(self):
		with self.assertRaises(ValueError):
			ParsedEntry(domain="", source_id="s", kind=EntryKind.BLOCK, line_number=1)
		with self.assertRaises(ValueError):
			ParsedEntry(domain="a.com", source_id="s", kind=EntryKind.ELEMENT, line_number=1)


if __name__ == "__main__":
	unittest.main()
