"""
==============================================================================
Scan Schemas Module
==============================================================================

Result record produced by every completed scan, plus the rendering rules
for its legacy text and display value.

==============================================================================
"""

from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from scanflow.profiles import BlockKind, OutputBlock


# Blocks whose value is part of the human-readable rendering
DISPLAYED_KINDS = {
    BlockKind.TEXT,
    BlockKind.VARIABLE,
    BlockKind.SELECT_OPTION,
    BlockKind.FUNCTION,
    BlockKind.BARCODE,
}


def render_legacy_text(blocks: Sequence[OutputBlock]) -> str:
    """BARCODE values joined by a space, empty values excluded."""
    return " ".join(
        block.value for block in blocks
        if block.type == BlockKind.BARCODE and block.value
    )


def render_display_value(blocks: Sequence[OutputBlock]) -> str:
    """
    Human-readable rendering of resolved blocks.

    Values of text, variable, select option, function and barcode blocks
    are joined by a single space; empty values are dropped. Keys, delays,
    commands and HTTP calls are not rendered.
    """
    return " ".join(
        block.value for block in blocks
        if block.type in DISPLAYED_KINDS and block.value
    )


class ScanModel(BaseModel):
    """
    Result of one completed profile execution.

    Attributes:
        id: Creation timestamp in milliseconds
        date: Scan date in milliseconds
        quantity: Quantity typed by the user, if the profile asked for one
        repeated: Marks a scan re-sent by the user (always False when created)
        output_blocks: Resolved blocks, IF/ENDIF removed
        text: Legacy text, BARCODE values only
        display_value: Full human-readable rendering
    """

    model_config = ConfigDict(frozen=True)

    id: int
    date: int
    quantity: Optional[str] = None
    repeated: bool = False
    output_blocks: List[OutputBlock] = Field(default_factory=list)
    text: str = ""
    display_value: str = ""

    @classmethod
    def create(
        cls,
        date: int,
        blocks: Sequence[OutputBlock],
        quantity: Optional[str] = None
    ) -> "ScanModel":
        """Build a record from resolved blocks, rendering text and display value."""
        return cls(
            id=date,
            date=date,
            quantity=quantity,
            output_blocks=list(blocks),
            text=render_legacy_text(blocks),
            display_value=render_display_value(blocks),
        )
