"""
API module for the Slotbook server.

This module provides the external HTTP interface:
- FastAPI application factory
- Bearer token identity dependency
- Availability and notification routes

Invariants:
    - Every route except /health requires a verified user id
    - Mutations go through the MutationCoordinator; reads do not
    - Error bodies carry a human readable message only

How to change safely:
    - Keep paths and message texts stable; mobile clients depend on them
    - Version the API if breaking changes are needed
"""

from .app import create_app
from .auth import IdentityVerifier, JwtIdentityVerifier

__all__ = [
    "create_app",
    "IdentityVerifier",
    "JwtIdentityVerifier",
]
