#!/usr/bin/env python3
"""
CLI entry point for marquee.cli module.

This allows running: python -m marquee.cli
"""

from .main import cli

if __name__ == "__main__":
    cli()
