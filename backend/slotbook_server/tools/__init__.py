"""
CLI tools for Slotbook administration.

This module provides command-line tools for:
- token: Issue and verify development access tokens

Invariants:
    - Tools work offline (no running server required)
    - Secrets are read from the same settings as the server
"""

from .token_cli import TokenCLI

__all__ = ["TokenCLI"]
