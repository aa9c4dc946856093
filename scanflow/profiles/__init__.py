"""
==============================================================================
Profiles Package - Output Templates
==============================================================================

Output profile data model and read-only profile store.

Classes:
--------
- OutputBlock: Single typed block (pydantic, frozen)
- OutputProfile: Ordered block template with derived flags
- ProfileStore: JSON-backed profile lookup

==============================================================================
"""

from .models import (
    BlockKind,
    DeviceVariable,
    OutputBlock,
    OutputProfile,
    default_profile,
    find_end_if_index,
)
from .store import ProfileStore

__all__ = [
    "BlockKind",
    "DeviceVariable",
    "OutputBlock",
    "OutputProfile",
    "ProfileStore",
    "default_profile",
    "find_end_if_index",
]
