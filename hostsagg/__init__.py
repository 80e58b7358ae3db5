#!/usr/bin/env python3
#
# hostsagg/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""hostsagg – hosts list ingestion, aggregation and filtering."""

__version__ = "0.1.0"

__all__ = ["__version__"]
