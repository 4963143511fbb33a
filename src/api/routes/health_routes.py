"""
Health check routes - public, no authentication required.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


@router.get(
    "",
    summary="System health check",
)
async def health_check(request: Request):
    """
    Check system health status.

    Reports which order source is wired in and the active settings.
    Does not call the order platform; use /api/test-shopify for that.
    """
    health = {
        "status": "healthy",
        "service": "Order Duplicate Guard API",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {}
    }

    try:
        import config
        health["components"]["config"] = "ok"
        problems = config.validate_config()
        if problems:
            health["components"]["config"] = "; ".join(problems)
            health["status"] = "degraded"
    except Exception as e:
        health["components"]["config"] = f"error: {str(e)}"
        health["status"] = "degraded"

    state = request.app.state
    health["components"]["order_source"] = getattr(state, "order_source", "unavailable")
    settings_store = getattr(state, "settings_store", None)
    if settings_store is not None:
        health["components"]["settings"] = settings_store.get().to_dict()
    else:
        health["components"]["settings"] = "unavailable"
        health["status"] = "degraded"

    return health
