#!/usr/bin/env python3
#
# tests/test_domains.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

import unittest

from hostsagg.lists.domains import is_ip_address, is_local_hostname, is_valid_adblock_domain, is_valid_domain


class DomainValidatorTests(unittest.TestCase):
	def test_accepts_regular_names(self):
		for name in ("example.com", "a.b.c.example.org", "xn--bcher-kva.example", "EXAMPLE.COM", "a-b.c"):
			with self.subTest(name=name):
				self.assertTrue(is_valid_domain(name))

	def test_single_label_allowed_by_base_validator_only(self):
		self.assertTrue(is_valid_domain("intranet"))
		self.assertFalse(is_valid_adblock_domain("intranet"))
		self.assertTrue(is_valid_adblock_domain("ads.example.com"))

	def test_rejects_bad_labels(self):
		for name in ("", "-a.com", "a-.com", "a..com", ".a.com", "a.com.", "a_b.com", "a b.com", "a/b.com"):
			with self.subTest(name=name):
				self.assertFalse(is_valid_domain(name))

	def test_label_and_total_length_limits(self):
		self.assertTrue(is_valid_domain("a" * 63 + ".com"))
		self.assertFalse(is_valid_domain("a" * 64 + ".com"))
		long_name = ".".join(["a" * 49] * 5)  # 249 chars
		self.assertTrue(is_valid_domain(long_name))
		self.assertFalse(is_valid_domain(long_name + ".abcd"))  # 254 chars

	def test_total_for_non_string_input(self):
		for value in (None, 42, b"example.com", ["example.com"], object()):
			with self.subTest(value=value):
				self.assertFalse(is_valid_domain(value))
				self.assertFalse(is_valid_adblock_domain(value))

	def test_ip_and_local_name_helpers(self):
		self.assertTrue(is_ip_address("127.0.0.1"))
		self.assertTrue(is_ip_address("::1"))
		self.assertFalse(is_ip_address("example.com"))
		self.assertTrue(is_local_hostname("LocalHost"))
		self.assertTrue(is_local_hostname("broadcasthost"))
		self.assertFalse(is_local_hostname("example.com"))


if __name__ == "__main__":
	unittest.main()
