"""Application configuration using environment variables."""
import os
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # CORS - Frontend URL
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Grid layout (world units per cell / per elevation layer)
    CELL_WORLD_SIZE: float = float(os.getenv("CELL_WORLD_SIZE", "1.5"))
    HEIGHT_STEP_WORLD_SIZE: float = float(os.getenv("HEIGHT_STEP_WORLD_SIZE", "1.5"))
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "16"))

    # Movement rules
    DEFAULT_SPEED_FEET: int = int(os.getenv("DEFAULT_SPEED_FEET", "30"))
    MAX_STRIDE_ACTIONS: int = int(os.getenv("MAX_STRIDE_ACTIONS", "3"))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
