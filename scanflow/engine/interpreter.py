"""
==============================================================================
Block Interpreter Module
==============================================================================

Executes one pass over a cloned output profile and produces a ScanModel.

Processing:
-----------
Blocks are processed strictly left to right. Blocks that need external
data (quantity, select option, barcode) suspend the pass until their
collaborator answers; after every suspension the generation token is
checked and a superseded pass stops before touching its variables.

Branching walks indexes over the block list: a true IF drops the IF and
its matching ENDIF and keeps executing the content, a false IF jumps past
the matching ENDIF.

Abort Reasons:
-------------
- user-cancelled:    quantity prompt or barcode acquisition cancelled
- invalid-condition: an IF expression failed to evaluate
- superseded:        a newer invocation started while this pass waited

==============================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from scanflow.core import EvaluationError
from scanflow.profiles import BlockKind, DeviceVariable, OutputBlock, find_end_if_index
from scanflow.schemas.scan import ScanModel
from .acquisition import BarcodeAcquirer
from .cancellation import GenerationToken
from .collaborators import ScanCollaborators
from .expressions import evaluate, interpolate, to_text, truthy


# Module logger
logger = logging.getLogger(__name__)


class AbortReason(str, Enum):
    """Why a pass ended without a result."""
    USER_CANCELLED = "user-cancelled"
    INVALID_CONDITION = "invalid-condition"
    SUPERSEDED = "superseded"


class ScanAborted(Exception):
    """Internal signal that unwinds a pass."""

    def __init__(self, reason: AbortReason):
        super().__init__(reason.value)
        self.reason = reason


class ScanVariables(BaseModel):
    """
    Variables visible to FUNCTION, IF and interpolated blocks.

    Attributes:
        barcode: Last acquired barcode
        barcodes: Every barcode acquired in this scan, in order
        quantity: Quantity typed by the user
        timestamp: Scan date in milliseconds times 1000
        device_name: Configured device name
        scan_session_name: Name of the scan session receiving the result
    """

    barcode: str = ""
    barcodes: List[str] = Field(default_factory=list)
    quantity: Optional[str] = None
    timestamp: int = 0
    device_name: str = ""
    scan_session_name: str = ""

    @classmethod
    def seed(cls, date: int, device_name: str, scan_session_name: str) -> "ScanVariables":
        return cls(
            timestamp=date * 1000,
            device_name=device_name,
            scan_session_name=scan_session_name,
        )

    def bindings(self) -> Dict[str, Any]:
        """Snapshot used as the expression binding table."""
        return self.model_dump()


class PassOutcome(BaseModel):
    """Result of one interpreter pass: a scan, or the reason it was aborted."""

    scan: Optional[ScanModel] = None
    abort_reason: Optional[AbortReason] = None

    @property
    def completed(self) -> bool:
        return self.scan is not None


class BlockInterpreter:
    """
    Executes output blocks for a single scan.

    Attributes:
        collaborators: Prompts and alerts used by interactive blocks
        quantity_type: Input type of the quantity prompt

    Example:
        >>> interpreter = BlockInterpreter(collaborators)
        >>> outcome = await interpreter.execute(
        ...     profile.clone_blocks(), variables, acquirer, token, now_ms
        ... )
    """

    def __init__(self, collaborators: ScanCollaborators, quantity_type: str = "number") -> None:
        self.collaborators = collaborators
        self.quantity_type = quantity_type

    async def execute(
        self,
        blocks: Sequence[OutputBlock],
        variables: ScanVariables,
        acquirer: BarcodeAcquirer,
        token: GenerationToken,
        date: int,
    ) -> PassOutcome:
        """
        Run one pass over ``blocks``.

        Args:
            blocks: Working copy of the profile blocks
            variables: Fresh variable context for this scan
            acquirer: Barcode acquisition front end for the invocation
            token: Generation captured when the invocation started
            date: Scan date in milliseconds

        Returns:
            PassOutcome with the ScanModel, or the abort reason
        """
        try:
            resolved, quantity = await self._run(blocks, variables, acquirer, token, date)
        except ScanAborted as e:
            logger.debug(f"Scan aborted: {e.reason.value}")
            return PassOutcome(abort_reason=e.reason)

        return PassOutcome(scan=ScanModel.create(date, resolved, quantity))

    async def _run(
        self,
        blocks: Sequence[OutputBlock],
        variables: ScanVariables,
        acquirer: BarcodeAcquirer,
        token: GenerationToken,
        date: int,
    ):
        resolved: List[OutputBlock] = []
        quantity: Optional[str] = None
        i = 0

        while i < len(blocks):
            block = blocks[i]
            kind = block.type

            if kind in (BlockKind.TEXT, BlockKind.KEY, BlockKind.DELAY):
                resolved.append(block)

            elif kind == BlockKind.VARIABLE:
                if block.is_quantity:
                    quantity = await self._ask_quantity(block, token)
                    variables.quantity = quantity
                    resolved.append(block.resolved(quantity))
                else:
                    resolved.append(block.resolved(self._device_variable(block.value, variables, date)))

            elif kind == BlockKind.SELECT_OPTION:
                options = interpolate(block.value, variables.bindings()).split(",")
                choice = await self.collaborators.select_prompt.request(options)
                self._ensure_current(token)
                resolved.append(block.resolved(choice))

            elif kind == BlockKind.FUNCTION:
                try:
                    value = to_text(evaluate(block.value, variables.bindings()))
                except EvaluationError as e:
                    logger.debug(f"FUNCTION block failed, using empty value: {e.message}")
                    value = ""
                resolved.append(block.resolved(value))

            elif kind == BlockKind.BARCODE:
                result = await acquirer.acquire(block.label)
                self._ensure_current(token)
                if result.cancelled:
                    raise ScanAborted(AbortReason.USER_CANCELLED)
                variables.barcode = result.text
                variables.barcodes.append(result.text)
                resolved.append(block.resolved(result.text))

            elif kind in (BlockKind.RUN, BlockKind.HTTP):
                resolved.append(block.resolved(interpolate(block.value, variables.bindings())))

            elif kind == BlockKind.IF:
                condition = await self._condition(block, variables)
                end_if = find_end_if_index(blocks, i + 1)
                if not condition:
                    i = end_if + 1
                    continue

            # ENDIF blocks reached here belong to a true IF and are dropped

            i += 1

        return resolved, quantity

    async def _condition(self, block: OutputBlock, variables: ScanVariables) -> bool:
        try:
            return truthy(evaluate(block.value, variables.bindings()))
        except EvaluationError as e:
            logger.warning(f"IF condition failed: {e.message}")
            await self.collaborators.alerts.show_error(
                f"An error occurred while executing your Output template: {e.message}"
            )
            raise ScanAborted(AbortReason.INVALID_CONDITION)

    async def _ask_quantity(self, block: OutputBlock, token: GenerationToken) -> str:
        answer = await self.collaborators.quantity_prompt.request(block.label, self.quantity_type)
        self._ensure_current(token)
        if answer is None:
            raise ScanAborted(AbortReason.USER_CANCELLED)
        if answer == "" and self.quantity_type == "number":
            return "1"
        return answer

    @staticmethod
    def _device_variable(name: str, variables: ScanVariables, date: int) -> str:
        moment = datetime.fromtimestamp(date / 1000)
        if name == DeviceVariable.DEVICE_NAME.value:
            return variables.device_name
        if name == DeviceVariable.TIMESTAMP.value:
            return str(variables.timestamp)
        if name == DeviceVariable.DATE.value:
            return moment.strftime("%Y-%m-%d")
        if name == DeviceVariable.TIME.value:
            return moment.strftime("%H:%M:%S")
        if name == DeviceVariable.DATE_TIME.value:
            return moment.strftime("%H:%M:%S %Y-%m-%d")
        if name == DeviceVariable.SCAN_SESSION_NAME.value:
            return variables.scan_session_name
        return name

    @staticmethod
    def _ensure_current(token: GenerationToken) -> None:
        if not token.is_current:
            raise ScanAborted(AbortReason.SUPERSEDED)
