"""Utility functions for web app deployment."""

from webapp.utils.cmd import missing_tools, run_cmd

__all__ = [
    "run_cmd",
    "missing_tools",
]
