"""FastAPI application for the option chain dashboard."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.redis import close_redis
from app.api.session import close_session, get_session
import logging
import time
import sys

# Import routers
from app.api.routes import backfill, health, history, option_chain

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

app = FastAPI(title="NSE Option Chain OI Analyzer API", version="1.0.0")

# Refresh scheduler sharing the API session
refresh_scheduler = None


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    global refresh_scheduler
    logger.info("Application starting up...")
    logger.info(f"Provider: {settings.trendlyne_base_url}")
    logger.info(f"History key: {settings.history_key} (limit {settings.history_limit})")

    if settings.auto_refresh_enabled:
        from app.scheduler.main import RefreshScheduler
        refresh_scheduler = RefreshScheduler(get_session())
        refresh_scheduler.start()

    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the refresh job and release the provider client and Redis pool."""
    global refresh_scheduler
    logger.info("Application shutting down...")
    if refresh_scheduler is not None:
        refresh_scheduler.stop()
        refresh_scheduler = None
    await close_session()
    await close_redis()


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests and responses."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")
    logger.debug(f"  Query params: {dict(request.query_params)}")

    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        logger.info(f"← {request.method} {request.url.path} - Status: {response.status_code} - Time: {process_time:.3f}s")

        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"← {request.method} {request.url.path} - ERROR after {process_time:.3f}s: {str(e)}")
        raise


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions and return a generic 500."""
    logger.error(f"Unhandled exception in {request.method} {request.url.path}")
    logger.error(f"Exception type: {type(exc).__name__}")
    logger.error(f"Exception message: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.log_level == "DEBUG" else "Internal server error"
        }
    )

# Configure CORS
logger.info(f"Configuring CORS with origins: {settings.cors_origins_list}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(health.router)
app.include_router(option_chain.router)
app.include_router(history.router)
app.include_router(backfill.router)


@app.get("/")
async def root():
    """Service banner."""
    return {"status": "ok", "service": "nse-oi-analyzer-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.backend_port)
