from __future__ import annotations

from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter

from server.core.config import get_settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def get_health() -> dict[str, object]:
    """Return the service health."""
    try:
        pkg_version = version("popbar")
    except PackageNotFoundError:  # pragma: no cover - depends on installation
        pkg_version = "unknown"

    settings = get_settings()
    return {
        "status": "ok",
        "version": pkg_version,
        "time": datetime.now(timezone.utc).isoformat(),
        "model": settings.chat_model,
        "provider_configured": bool(settings.openai_api_key),
    }
