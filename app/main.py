import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.v1.routes import router as api_router
from api.v1.routes.assistant import close_pipeline
from app.settings import settings

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format=settings.LOG_FORMAT,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s %s", settings.APP_NAME, settings.APP_VERSION)
    yield
    await close_pipeline()


app = FastAPI(
    title=settings.APP_NAME,
    description="Pharmacy staff assistant - clinical query resolution API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.get("/")
async def root() -> dict:
    """Root endpoint for basic service metadata."""
    return {"service": settings.APP_NAME, "version": settings.APP_VERSION}


app.include_router(api_router)


# ============================================================================
# Info Endpoint
# ============================================================================


@app.get("/info")
async def get_info():
    """Get API information"""
    return {
        "name": settings.APP_NAME,
        "description": "Answers pharmacy staff questions about stock, dosage and drug information",
        "version": settings.APP_VERSION,
        "endpoints": {
            "health": "/api/v1/health (GET) - Health check",
            "status": "/api/v1/status (GET) - Service status",
            "intent": "/api/v1/assistant/intent (POST) - Extract intent and drug name from text",
            "respond": "/api/v1/assistant/respond (POST) - Answer a staff question",
            "info": "/info (GET) - This endpoint",
        },
        "docs": "/docs (Swagger UI)",
        "redoc": "/redoc (ReDoc)",
        "getting_started": {
            "step_1": "POST free text to /api/v1/assistant/respond as {\"text\": ...}",
            "step_2": "Send suggestedSessionContext back as sessionContext on the next turn",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )
