"""
==============================================================================
Output Profile Models Module
==============================================================================

Pydantic models for output blocks and output profiles.

An output profile is an ordered template of typed blocks. Profiles are
immutable once built: the engine executes a structural clone per scan.

Nesting Rules:
-------------
- Every IF block has exactly one matching ENDIF at the same depth
- IF/ENDIF pairs may nest to any depth
- Profiles violating these rules are rejected with ProfileError

==============================================================================
"""

from __future__ import annotations

from enum import Enum
from functools import cached_property
from typing import List, Optional, Sequence, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from scanflow.core import exceptions


class BlockKind(str, Enum):
    """Output block types."""
    TEXT = "text"
    KEY = "key"
    VARIABLE = "variable"
    SELECT_OPTION = "select_option"
    FUNCTION = "function"
    BARCODE = "barcode"
    DELAY = "delay"
    RUN = "run"
    HTTP = "http"
    IF = "if"
    ENDIF = "endif"


class DeviceVariable(str, Enum):
    """Values accepted by VARIABLE blocks."""
    DEVICE_NAME = "deviceName"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TIME = "time"
    DATE_TIME = "date_time"
    SCAN_SESSION_NAME = "scan_session_name"
    QUANTITY = "quantity"


class OutputBlock(BaseModel):
    """
    Single typed step of an output profile.

    Attributes:
        type: Block kind
        value: Literal text, variable name, or expression/template
        label: Optional prompt shown when the block acquires data
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: BlockKind = Field(..., description="Block kind")
    value: str = Field(default="", description="Literal, variable name or expression")
    label: Optional[str] = Field(default=None, description="Acquisition prompt")

    @property
    def is_quantity(self) -> bool:
        """Check if this block prompts for a quantity."""
        return self.type == BlockKind.VARIABLE and self.value == DeviceVariable.QUANTITY.value

    def resolved(self, value: str) -> "OutputBlock":
        """Return a copy carrying the computed value."""
        return self.model_copy(update={"value": value})


def find_end_if_index(blocks: Sequence[OutputBlock], start: int) -> int:
    """
    Find the ENDIF matching an IF, scanning forward from ``start``.

    ``start`` points at the first block after the IF. Nested IF blocks
    increase the depth, ENDIF blocks decrease it; the match is the ENDIF
    found while the depth is back at the starting level.

    Args:
        blocks: Block sequence
        start: Index of the block following the IF

    Returns:
        Index of the matching ENDIF

    Raises:
        ProfileError: If the IF has no matching ENDIF
    """
    depth = 0
    for index in range(start, len(blocks)):
        kind = blocks[index].type
        if kind == BlockKind.IF:
            depth += 1
        elif kind == BlockKind.ENDIF:
            if depth == 0:
                return index
            depth -= 1
    raise exceptions.unmatched_if(start - 1)


def validate_nesting(blocks: Sequence[OutputBlock]) -> None:
    """Ensure IF/ENDIF blocks are balanced and properly ordered."""
    open_ifs: List[int] = []
    for index, block in enumerate(blocks):
        if block.type == BlockKind.IF:
            open_ifs.append(index)
        elif block.type == BlockKind.ENDIF:
            if not open_ifs:
                raise exceptions.stray_endif(index)
            open_ifs.pop()
    if open_ifs:
        raise exceptions.unmatched_if(open_ifs[-1])


class OutputProfile(BaseModel):
    """
    Ordered template of output blocks.

    Attributes:
        name: Profile display name
        output_blocks: Blocks executed left to right on every scan

    Example:
        >>> profile = OutputProfile(name="Default", output_blocks=[
        ...     OutputBlock(type=BlockKind.BARCODE),
        ...     OutputBlock(type=BlockKind.KEY, value="enter"),
        ... ])
        >>> profile.has_blocking_component
        False
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(default="Output template", description="Profile name")
    output_blocks: Tuple[OutputBlock, ...] = Field(
        default_factory=tuple,
        validation_alias=AliasChoices("output_blocks", "outputBlocks"),
    )

    @model_validator(mode="after")
    def validate_if_blocks(self) -> "OutputProfile":
        validate_nesting(self.output_blocks)
        return self

    @cached_property
    def has_quantity_component(self) -> bool:
        """Check if any block prompts for a quantity."""
        return any(block.is_quantity for block in self.output_blocks)

    @cached_property
    def has_blocking_component(self) -> bool:
        """
        Check if any block needs user interaction between acquisitions.

        SELECT_OPTION and quantity VARIABLE blocks stop the scan waiting
        for the user, so hardware-continuous acquisition can't be used.
        """
        return any(
            block.type == BlockKind.SELECT_OPTION or block.is_quantity
            for block in self.output_blocks
        )

    def clone_blocks(self) -> List[OutputBlock]:
        """Structural clone of the block sequence for one scan."""
        return [block.model_copy(deep=True) for block in self.output_blocks]


def default_profile() -> OutputProfile:
    """Profile used when no profile is configured: BARCODE followed by ENTER."""
    return OutputProfile(
        name="Output template 1",
        output_blocks=(
            OutputBlock(type=BlockKind.BARCODE, value="BARCODE"),
            OutputBlock(type=BlockKind.KEY, value="enter"),
        ),
    )
