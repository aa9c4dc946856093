"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Result records and WebSocket/API payloads.

This package provides:
- Scan: ScanModel result record and its renderings
- Session: Messages exchanged over the scan WebSocket
- Profile: Output profile responses

==============================================================================
"""

from .scan import ScanModel, render_display_value, render_legacy_text
from .session import ClientMessage, ClientMessageType, PromptKind, ServerMessageType
from .profile import ProfileDetail, ProfileListResponse, ProfileSummary

__all__ = [
    # Scan
    "ScanModel",
    "render_display_value",
    "render_legacy_text",
    # Session
    "ClientMessage",
    "ClientMessageType",
    "PromptKind",
    "ServerMessageType",
    # Profile
    "ProfileDetail",
    "ProfileListResponse",
    "ProfileSummary",
]
