"""Health check routes for service monitoring and load balancing."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from chatledger.infrastructure.app_factory import get_app_factory
from chatledger.version import VERSION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint for service monitoring.

    Always answers 200: an unreachable chat store puts the service in
    degraded mode rather than taking it down.

    Returns:
        Dictionary containing:
        - status: "healthy", or "degraded" when the store is unavailable
        - service: Service name
        - version: Service version
        - database: "available" or "unavailable"
        - timestamp: Current UTC timestamp in ISO-8601 format
    """
    factory = get_app_factory(request)
    available = await factory.connection_manager.is_available()
    return {
        "status": "healthy" if available else "degraded",
        "service": factory.config_manager.app_settings.app_name,
        "version": VERSION,
        "database": "available" if available else "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
