"""
Main FastAPI Application
Entry point for the OrthoBot backend server
"""
import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

from app.config import settings
from app.errors import ValidationError
from app.models.voice_session import VoiceSessionDocument
from app.ai.orchestrator import build_orchestrator
from app.utils.logging_config import setup_logging, get_logger

# Import routers
from app.api.routes import chat, voice

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings)
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

    client = None
    if settings.use_memory_voice_store:
        logger.warning("Voice sessions are kept in memory and are lost on restart")
    else:
        client = AsyncIOMotorClient(settings.MONGODB_URL)
        await init_beanie(
            database=client[settings.MONGODB_DB_NAME],
            document_models=[VoiceSessionDocument]
        )
        logger.info("Connected to MongoDB: %s", settings.MONGODB_DB_NAME)

    app.state.orchestrator = build_orchestrator(settings)
    logger.info("Server running on %s:%s", settings.HOST, settings.PORT)

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.orchestrator.close()
    if client is not None:
        client.close()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Orthopedic recovery assistant with text chat and voice call memory",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": exc.message, "field": exc.field},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


# Include routers
app.include_router(chat.router, prefix="/api", tags=["Chat"])
app.include_router(voice.router, prefix="/api", tags=["Voice Sessions"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "OrthoBot Backend API",
        "version": settings.APP_VERSION,
        "docs": "/api/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
