"""
==============================================================================
Expression Endpoints
==============================================================================

Evaluates FUNCTION/IF expressions against sample variables, so profile
authors can check a condition before saving it.

==============================================================================
"""

import math
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field

from scanflow.engine.expressions import evaluate, interpolate, to_text


router = APIRouter(prefix="/expressions", tags=["Expressions"])


class EvaluateRequest(BaseModel):
    """Expression evaluation request."""
    expression: str = Field(..., min_length=1, max_length=2000)
    variables: Dict[str, Any] = Field(default_factory=dict)


class InterpolateRequest(BaseModel):
    """Template interpolation request."""
    template: str = Field(..., max_length=2000)
    variables: Dict[str, Any] = Field(default_factory=dict)


@router.post("/evaluate")
async def evaluate_expression(request: EvaluateRequest):
    """
    Evaluate an expression.

    Invalid expressions and unknown variables answer 422 EVALUATION_ERROR.
    """
    value = evaluate(request.expression, request.variables)
    text = to_text(value)
    # JSON has no NaN or Infinity; the text rendering still carries them
    if isinstance(value, float) and not math.isfinite(value):
        value = None
    return {"success": True, "value": value, "text": text}


@router.post("/interpolate")
async def interpolate_template(request: InterpolateRequest):
    """Replace {{ name }} placeholders in a template."""
    return {"success": True, "text": interpolate(request.template, request.variables)}
