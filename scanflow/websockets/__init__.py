"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for the scan engine.

Handlers:
---------
- scanner: Scan sessions driven by a remote client

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
