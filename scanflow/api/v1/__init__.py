"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- profiles: Output profiles (read-only)
- expressions: Expression evaluation and template interpolation

==============================================================================
"""

from . import expressions, health, profiles

__all__ = ["health", "profiles", "expressions"]
