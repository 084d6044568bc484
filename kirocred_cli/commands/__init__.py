"""
CLI command modules.
"""

from kirocred_cli.commands import issue, keys, verify

__all__ = ["issue", "keys", "verify"]
