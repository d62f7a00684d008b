import os
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from fbtoken.core.config import settings
from fbtoken.core.logging import get_logger
from fbtoken.core.middlewares import ErrorHandlingMiddleware
from fbtoken.core.exceptions import AppBaseException
from fbtoken.core.metrics import MetricsMiddleware, metrics_endpoint
from fbtoken.api.routes import router as api_router
from fbtoken.auth.router import router as auth_router

# Initialize logger
logger = get_logger("main")


app = FastAPI(
    title=settings.APP_NAME,
    description="Obtain Firebase ID tokens for API testing and push them into REST-client environments",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add Prometheus metrics middleware
app.add_middleware(MetricsMiddleware)

# Add error handling middleware
app.add_middleware(ErrorHandlingMiddleware)

if settings.CORS_ORIGINS:
    origins = settings.CORS_ORIGINS.split(',')
    logger.info(f"CORS enabled for specific origins: {origins}")
else:
    origins = ["http://localhost:3000", "http://localhost:5173"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
@app.exception_handler(AppBaseException)
async def app_exception_handler(request: Request, exc: AppBaseException):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path}: {exc.message}", extra={"status_code": exc.status_code})
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "details": exc.details
        }
    )

# Health check endpoints
@app.get("/healthz", tags=["Health"])
async def healthz():
    return {"status": "ok"}

@app.get("/readyz", tags=["Health"])
async def readyz():
    """
    Check that tokens can be issued (API key present) and cached (cache dir writable)
    """
    api_key_status = "ready" if settings.effective_api_key() else "not ready"

    cache_dir = Path(settings.TOKEN_CACHE_PATH).expanduser().parent
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
        cache_status = "ready" if os.access(cache_dir, os.W_OK) else "not ready"
    except OSError as e:
        logger.error(f"Token cache check failed: {str(e)}")
        cache_status = "not ready"

    overall_status = "ready" if api_key_status == "ready" and cache_status == "ready" else "not ready"

    return {
        "status": overall_status,
        "services": {
            "api_key": api_key_status,
            "token_cache": cache_status,
            "emulator": settings.FIREBASE_AUTH_EMULATOR_HOST or None
        }
    }

# Prometheus metrics endpoint
@app.get("/metrics", include_in_schema=False)
def metrics():
    return metrics_endpoint()

# Routes
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
app.include_router(api_router, prefix=settings.API_PREFIX, tags=["REST Client"])

# Root endpoint
@app.get("/")
async def root():
    url_prefix = f"http://{settings.HOST}:{settings.PORT}"
    return {
        "message": "Firebase test token service",
        "docs": f"{url_prefix}/docs",
        "redoc": f"{url_prefix}/redoc",
    }


def run(host: str = None, port: int = None):
    uvicorn.run(
        "fbtoken.main:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
