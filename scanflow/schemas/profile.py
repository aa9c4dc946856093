"""
==============================================================================
Profile Schemas Module
==============================================================================

Response schemas for the output profile endpoints.

==============================================================================
"""

from typing import List

from pydantic import BaseModel, Field

from scanflow.profiles import OutputBlock, OutputProfile


class ProfileSummary(BaseModel):
    """Profile entry in list responses."""
    index: int = Field(ge=0)
    name: str
    block_count: int = Field(ge=0)
    has_quantity_component: bool
    has_blocking_component: bool

    @classmethod
    def from_profile(cls, index: int, profile: OutputProfile) -> "ProfileSummary":
        return cls(
            index=index,
            name=profile.name,
            block_count=len(profile.output_blocks),
            has_quantity_component=profile.has_quantity_component,
            has_blocking_component=profile.has_blocking_component,
        )


class ProfileDetail(ProfileSummary):
    """Profile with its blocks."""
    output_blocks: List[OutputBlock]

    @classmethod
    def from_profile(cls, index: int, profile: OutputProfile) -> "ProfileDetail":
        summary = ProfileSummary.from_profile(index, profile)
        return cls(**summary.model_dump(), output_blocks=list(profile.output_blocks))


class ProfileListResponse(BaseModel):
    """Profile list response."""
    success: bool = Field(default=True)
    items: List[ProfileSummary]
    total: int = Field(ge=0)
