import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cms.cache import cache
from cms.config import settings
from cms.errors import ServiceFailure
from cms.middleware import TimingMiddleware
from cms.routers import articles

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure the root logger from ``settings.LOG_LEVEL``."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # SQL echo is controlled by settings.DEBUG on the engine itself.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await cache.connect()
    logger.info("CMS article service started (env=%s)", settings.APP_ENV)
    yield
    await cache.disconnect()


app = FastAPI(
    title="CMS Article API",
    description="Article management for the content-management backend",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceFailure)
async def service_failure_handler(request: Request, exc: ServiceFailure):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.kind.value,
            "msg": exc.error.message,
            "request": f"{request.method} {request.url.path}",
        },
    )


# Routers
app.include_router(articles.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION, "cache": cache.stats}
