#!/usr/bin/env python3
"""
Package entry point (can be executed with python -m metadump)

This file is part of pg_metadump.
"""

from .cli import script

if __name__ == "__main__":
    script()
