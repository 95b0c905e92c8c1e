"""
Usage Statistics

Admin-only view of the in-process usage counters, combined with vector
store and session counts.

Security
--------
All endpoints are protected by `verify_admin` which requires:
- `x-admin-key` header OR
- `key` query parameter
"""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from .dependencies import get_services
from ..core.errors import ProviderCallFailed, ProviderUnavailable
from ..services import ServiceContainer

router = APIRouter(prefix="/stats", tags=["stats"])


# ---------------------------------------------------------------------
# Security Dependency
# ---------------------------------------------------------------------

async def verify_admin(
    services: Annotated[ServiceContainer, Depends(get_services)],
    x_admin_key: Optional[str] = Header(None, alias="x-admin-key"),
    key: Optional[str] = Query(None),
) -> None:
    """
    Verify the request is from an admin using the application's configured
    API key.
    Checks header first, then query param.
    """
    admin_key = services.config.admin_api_key
    expected_key = admin_key.get_secret_value() if admin_key else None

    if not expected_key:
        # No key configured: admin access stays closed
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access is not configured (ADMIN_API_KEY missing)",
        )

    provided_key = x_admin_key or key

    if not provided_key or provided_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing admin API key",
        )


# ---------------------------------------------------------------------
# API Endpoints
# ---------------------------------------------------------------------

@router.get("", dependencies=[Depends(verify_admin)])
async def get_stats(
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> Dict[str, Any]:
    """
    Usage counters plus a snapshot of the vector index and sessions.

    The vector section reports ``available: false`` rather than failing
    when the index cannot be read.
    """
    stats = services.usage.snapshot()

    try:
        vectors = await services.vector_store.stats()
        stats["vector_store"] = {"available": True, **vectors}
    except (ProviderUnavailable, ProviderCallFailed):
        stats["vector_store"] = {"available": False, "count": 0}

    stats["sessions"] = {"active": len(services.sessions)}
    stats["documents"]["registered"] = len(services.processor.registry)
    return stats
