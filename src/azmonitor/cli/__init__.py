"""
Command-line interface for the azmonitor package.

This module provides the main CLI entry point for the exporter.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
