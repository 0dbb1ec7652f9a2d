"""
Flowsmith - FastAPI Application
Natural-language n8n workflow design and safe deployment
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from datetime import datetime
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from flowsmith.database import init_db
from flowsmith.config import settings
from flowsmith.api.routes import chat, health

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Flowsmith API...")

    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")

    logger.info(f"API running on {settings.app_env} environment")
    yield
    logger.info("Shutting down Flowsmith API...")


app = FastAPI(
    title=settings.app_name,
    description="Backend API for Flowsmith",
    version="1.0.0",
    lifespan=lifespan,
)

# Trust forwarded proto/host headers from the load balancer.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests are a 400, never processed."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": first.get("msg", "Invalid request"),
            "details": [
                {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
                for err in errors
            ],
        },
    )


@app.get("/")
async def root() -> dict:
    return {
        "name": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.utcnow().isoformat(),
    }


app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["Health"])
app.include_router(chat.router, prefix=settings.api_v1_prefix, tags=["Chat"])
