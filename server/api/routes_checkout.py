from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from server.core.config import get_settings
from server.core.logger import get_logger


router = APIRouter(prefix="/api", tags=["checkout"])

logger = get_logger("server")


class CheckoutSession(BaseModel):
    url: Optional[str] = None


@router.post("/checkout-session", response_model=CheckoutSession, response_model_exclude_none=True)
async def create_checkout_session() -> CheckoutSession:
    """Hand out the external checkout URL, when one is configured."""
    settings = get_settings()
    if not settings.checkout_url:
        logger.info("checkout requested but no checkout_url configured")
        return CheckoutSession()
    return CheckoutSession(url=settings.checkout_url)
