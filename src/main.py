"""
Main FastAPI application entry point.
Configures and initializes the Bulk Ingestion API.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from mangum import Mangum
from src.core.config import settings
from src.core.dependencies import get_file_queue_service
from src.core.exception_handler import register_exception_handlers
from src.api.routes import health_routes, upload_routes, queue_routes, progress_routes, template_routes, history_routes

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Cancel running drains and wait for their final state to be recorded
    await get_file_queue_service().shutdown()


# Create FastAPI application
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Bulk data ingestion with record type detection, queued processing and live progress",
    lifespan=lifespan
)

# Register exception handlers
register_exception_handlers(app)

# Register routes
app.include_router(health_routes.router)
app.include_router(upload_routes.router)
app.include_router(queue_routes.router)
app.include_router(progress_routes.router)
app.include_router(template_routes.router)
app.include_router(history_routes.router)

# Middleware to log request paths
@app.middleware("http")
async def log_request(request: Request, call_next):
    logger.info("Request path: %s", request.url.path)
    response = await call_next(request)
    return response

# Lambda handler for AWS
handler = Mangum(app, lifespan="off")


# For local development
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
