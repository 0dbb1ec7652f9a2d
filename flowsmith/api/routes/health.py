"""
Health API Routes
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from flowsmith.database import database_health, get_db
from flowsmith.integrations.n8n import n8n_client
from flowsmith.services.secret_resolver import SecretResolver

router = APIRouter()


@router.get("/health")
async def health_check() -> JSONResponse:
    """Application and database health"""
    db = database_health()
    ok = bool(db.get("ok"))
    return JSONResponse(
        status_code=status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if ok else "degraded",
            "database": db,
        },
    )


@router.get("/health/integrations")
async def check_integrations(db: Session = Depends(get_db)) -> dict:
    """Verify shared model credential, n8n reachability and database connectivity."""
    checks = {
        "anthropic": bool(SecretResolver(db).resolve("anthropic")),
        "n8n_configured": n8n_client.enabled,
        "n8n_reachable": await n8n_client.ping() if n8n_client.enabled else False,
    }
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception:
        checks["database"] = False

    return {
        "integrations": checks,
        "ready": all(checks.values()),
        "missing": [k for k, v in checks.items() if not v],
    }
