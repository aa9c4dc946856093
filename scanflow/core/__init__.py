"""
==============================================================================
Core Package
==============================================================================

Core infrastructure shared by the engine and the service layer.

Modules:
--------
- exceptions: ScanEngineException hierarchy and error factory functions

Usage:
------
    from scanflow.core import ScanEngineException, EvaluationError

    from scanflow.core import exceptions
    raise exceptions.profile_not_found(3)

==============================================================================
"""

from .exceptions import (
    EvaluationError,
    ProfileError,
    ScanEngineException,
    register_exception_handlers,
)

__all__ = [
    "ScanEngineException",
    "EvaluationError",
    "ProfileError",
    "register_exception_handlers",
]
