"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from scanflow.config import EnvSettingsProvider
from scanflow.core.dependencies import get_settings_provider


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, provider: EnvSettingsProvider):
        self._provider = provider

    def check_profiles(self) -> dict:
        """Check output profile status."""
        path = self._provider.settings.profiles_path
        profiles = self._provider.store.profiles
        status = "healthy" if path.exists() else "default"
        return {"status": status, "profiles": len(profiles)}

    def get_health(self) -> dict:
        """Get full health status."""
        profiles_info = self.check_profiles()

        return {
            "status": "healthy",
            "components": {
                "api": "healthy",
                "engine": "healthy",
                "profiles": profiles_info["status"]
            },
            "details": {
                "profiles_loaded": profiles_info["profiles"]
            }
        }


@router.get("")
async def health_check(provider: EnvSettingsProvider = Depends(get_settings_provider)):
    """
    Health check endpoint.

    Returns system status including API, engine, and output profiles.
    """
    controller = HealthController(provider)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
