"""
Interface module - command-line access.
"""

from tugrik.interface.cli import app as cli_app

__all__ = ["cli_app"]
