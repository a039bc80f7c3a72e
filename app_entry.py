"""
BITABLE LEDGER - Canonical FastAPI Entrypoint
=============================================
Serves the Feishu credential proxy next to the static ledger front-end.

Start Command: uvicorn app_entry:app --host 0.0.0.0 --port $PORT

Boot-safe: NO Feishu calls at startup. The first proxied request fetches
the tenant access token.
"""

from fastapi import FastAPI

from bitable_ledger import config
from bitable_ledger.routes_feishu import close_proxy, router as feishu_router
from bitable_ledger.utils.logger import get_logger

logger = get_logger("bitable_ledger.app_entry")

# =============================================================================
# App Configuration
# =============================================================================

app = FastAPI(
    title="BITABLE LEDGER",
    version=config.VERSION,
    description="Feishu Bitable credential proxy for the purchase / formula / sales ledger"
)

# =============================================================================
# Mount Routers
# =============================================================================

app.include_router(feishu_router)


# =============================================================================
# Lifecycle
# =============================================================================

@app.on_event("startup")
def startup_event():
    """Log configuration state only; secrets are never printed."""
    if config.is_configured():
        logger.info(f"Feishu proxy starting ({config.ENVIRONMENT}), credentials configured")
    else:
        logger.warning("Feishu proxy starting without FEISHU_APP_ID / FEISHU_APP_SECRET / FEISHU_SHEET_TOKEN")


@app.on_event("shutdown")
async def shutdown_event():
    await close_proxy()


# =============================================================================
# Health Endpoint
# =============================================================================

@app.get("/health", tags=["admin"])
def health():
    """
    Health check endpoint.
    No Feishu calls - always responds.
    """
    return {
        "status": "ok",
        "version": config.VERSION,
        "environment": config.ENVIRONMENT,
        "configured": config.is_configured(),
    }


# =============================================================================
# Main (for local dev)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
