"""
==============================================================================
Output Profile Endpoints
==============================================================================

Read-only access to the configured output profiles.

==============================================================================
"""

from fastapi import APIRouter, Depends

from scanflow.config import EnvSettingsProvider
from scanflow.core import exceptions
from scanflow.core.dependencies import get_settings_provider
from scanflow.schemas.profile import ProfileDetail, ProfileListResponse, ProfileSummary


router = APIRouter(prefix="/profiles", tags=["Profiles"])


class ProfileController:
    """Controller for output profile operations."""

    def __init__(self, provider: EnvSettingsProvider):
        self._provider = provider

    def list_profiles(self) -> ProfileListResponse:
        """List all profiles with their derived flags."""
        profiles = self._provider.store.profiles
        return ProfileListResponse(
            items=[ProfileSummary.from_profile(i, p) for i, p in enumerate(profiles)],
            total=len(profiles),
        )

    def get_profile(self, index: int) -> ProfileDetail:
        """Get one profile by position."""
        profiles = self._provider.store.profiles
        if index < 0 or index >= len(profiles):
            raise exceptions.profile_not_found(index)
        return ProfileDetail.from_profile(index, profiles[index])

    def reload(self) -> ProfileListResponse:
        """Re-read the profiles file."""
        self._provider.reload_profiles()
        return self.list_profiles()


@router.get("", response_model=ProfileListResponse)
async def list_profiles(provider: EnvSettingsProvider = Depends(get_settings_provider)):
    """List output profiles."""
    return ProfileController(provider).list_profiles()


@router.get("/{index}", response_model=ProfileDetail)
async def get_profile(index: int, provider: EnvSettingsProvider = Depends(get_settings_provider)):
    """Get an output profile with its blocks."""
    return ProfileController(provider).get_profile(index)


@router.post("/reload", response_model=ProfileListResponse)
async def reload_profiles(provider: EnvSettingsProvider = Depends(get_settings_provider)):
    """Reload output profiles from disk."""
    return ProfileController(provider).reload()
