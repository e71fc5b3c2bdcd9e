from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from dealflow.api.v1 import router as v1_router
from dealflow.api.dependencies import get_services
from dealflow.api.exceptions import register_exception_handlers
from dealflow.api.middleware import RequestContextMiddleware, RequestLoggingMiddleware
from dealflow.config.settings import get_settings
from dealflow.utils.request_context import RequestIdLogFilter

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s'
)
for handler in logging.getLogger().handlers:
    handler.addFilter(RequestIdLogFilter())

app = FastAPI(
    title="Dealflow API",
    description="Opportunity applications, deal conversion and multi-party contract signing",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

register_exception_handlers(app)

# Add middleware; the last one added runs first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestContextMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
)

app.include_router(v1_router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    stores = get_services().stores
    database_ok = await stores["applications"].health_check()
    return {
        "status": "healthy" if database_ok else "degraded",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": "healthy" if database_ok else "unhealthy",
            "storage_backend": settings.storage_backend,
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
