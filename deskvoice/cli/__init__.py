"""
deskvoice CLI
"""

from deskvoice.cli.main import cli

__all__ = ["cli"]
