"""
Application Configuration
Loads and validates environment variables
"""
import os
from pydantic_settings import BaseSettings
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "OrthoBot Backend"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URL: Optional[str] = os.getenv("DB_URL")
    MONGODB_DB_NAME: str = "orthobot"

    # Voice session persistence: "mongo" or "memory"
    VOICE_SESSION_BACKEND: str = "mongo"
    VOICE_SESSION_TTL_SECONDS: int = 3600  # safety net for abandoned calls

    # Groq (OpenAI-compatible) chat completions
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 300
    LLM_VOICE_MAX_TOKENS: int = 200
    LLM_TIMEOUT_SECONDS: float = 20.0

    # Embeddings (OpenAI-compatible)
    EMBEDDING_API_KEY: str = ""
    EMBEDDING_BASE_URL: Optional[str] = None
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_TIMEOUT_SECONDS: float = 10.0

    # Supabase vector search
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_MATCH_FUNCTION: str = "match_documents"

    # Knowledge base
    KB_SIMILARITY_THRESHOLD: float = 0.3
    KB_TOP_K: int = 5
    CURATED_KB_PATH: Optional[str] = None

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    CORS_ALLOW_CREDENTIALS: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "logs/app.log"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 15
    RATE_LIMIT_PERIOD: int = 60

    # Response cache
    CACHE_TTL_SECONDS: int = 300
    CACHE_MAX_ENTRIES: int = 1000

    # Text chat memory
    TRANSCRIPT_MAX_TURNS: int = 10
    TRANSCRIPT_CONTEXT_TURNS: int = 5

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert CORS origins string to list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def use_memory_voice_store(self) -> bool:
        return self.VOICE_SESSION_BACKEND.lower() == "memory" or not self.MONGODB_URL

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
