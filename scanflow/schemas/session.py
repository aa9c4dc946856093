"""
==============================================================================
Scan Session Schemas Module
==============================================================================

Messages exchanged over the scan WebSocket.

Client Messages:
---------------
- start:   {"type": "start", "mode": "single", "profile_index": 0,
            "scan_session_name": "Inventory"}
- barcode: {"type": "barcode", "text": "123", "format": "EAN_13"}
- frame:   {"type": "frame", "frame": "<base64 image>"}
- cancel:  {"type": "cancel"}  (leaves the barcode scanner)
- reply:   {"type": "reply", "request_id": 3, "value": "2"}
- refresh: {"type": "refresh"} (reload the selected profile)
- stop:    {"type": "stop"}

Server Messages:
---------------
- prompt:      {"type": "prompt", "request_id": 3, "kind": "quantity", ...}
- dismiss:     {"type": "dismiss", "request_id": 3}
- subscribe:   {"type": "subscribe", "options": {...}}
- unsubscribe: {"type": "unsubscribe"}
- scan:        {"type": "scan", "scan": {...}}
- alert:       {"type": "alert", "message": "..."}
- complete:    {"type": "complete"}
- error:       {"type": "error", "code": "...", "message": "..."}

==============================================================================
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClientMessageType(str, Enum):
    """Messages sent by the client."""
    START = "start"
    BARCODE = "barcode"
    FRAME = "frame"
    CANCEL = "cancel"
    REPLY = "reply"
    REFRESH = "refresh"
    STOP = "stop"


class ServerMessageType(str, Enum):
    """Messages sent by the server."""
    PROMPT = "prompt"
    DISMISS = "dismiss"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    SCAN = "scan"
    ALERT = "alert"
    COMPLETE = "complete"
    ERROR = "error"


class PromptKind(str, Enum):
    """Dialogs the client is asked to show."""
    BARCODE = "barcode"
    MANUAL = "manual"
    QUANTITY = "quantity"
    SELECT_OPTION = "select_option"
    ADD_MORE = "add_more"
    INFINITE_LOOP = "infinite_loop"


class ClientMessage(BaseModel):
    """Any message received from the client."""

    model_config = ConfigDict(extra="ignore")

    type: ClientMessageType

    # start
    mode: str = Field(default="single")
    profile_index: int = Field(default=0)
    scan_session_name: str = Field(default="")

    # barcode / frame
    text: Optional[str] = None
    format: Optional[str] = None
    frame: Optional[str] = None

    # reply
    request_id: Optional[int] = None
    value: Optional[Any] = None
