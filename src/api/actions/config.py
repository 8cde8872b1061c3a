from typing import Any

from fastapi import APIRouter

from core.config import get_settings

router = APIRouter()

@router.get("/config", tags=["System"])
async def get_configuration() -> dict[str, Any]:
    """Get current runtime configuration, without credentials."""
    return get_settings().model_dump(mode="json", exclude={"openleg_api_key"})
