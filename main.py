#!/usr/bin/env python3
#
# main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

# hostsagg - Hosts list aggregator
# Local entry point: runs one aggregation and writes the output files
#

import asyncio
import sys

from hostsagg.main import main

if __name__ == "__main__":
	sys.exit(asyncio.run(main()))
