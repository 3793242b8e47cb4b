"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    model_config = SettingsConfigDict(
        # Look for .env in project root first, then backend/.env
        env_file=[
            str(Path(__file__).parent.parent.parent.parent / ".env"),
            str(Path(__file__).parent.parent.parent / ".env"),
        ],
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )
    
    # App metadata
    APP_NAME: str = "BusqAI Client Gateway"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    
    # Local store (session token + shopping list)
    DATABASE_URL: str = "sqlite:///./data/busqai.db"
    
    # Hosted data service
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_ANON_KEY: str = ""
    DATA_SERVICE_TIMEOUT: float = 10.0  # seconds
    DATA_SERVICE_MAX_RETRIES: int = 3  # reads only, sends never retry
    DATA_SERVICE_RETRY_DELAY: float = 0.5  # seconds, base for exponential backoff
    PHONE_COUNTRY_CODE: str = "+591"
    
    # Negotiation
    MAX_NEGOTIATION_ROUNDS: int = 5
    CURRENCY_SYMBOL: str = "Bs"
    QUICK_OFFER_DISCOUNTS: str = "0.10,0.20"
    
    # Realtime
    TYPING_QUIET_SECONDS: float = 3.0
    REALTIME_MAX_RECONNECT_ATTEMPTS: int = 5
    REALTIME_RECONNECT_DELAY: float = 1.0  # seconds, base for exponential backoff
    HISTORY_POLL_INTERVAL: float = 15.0  # seconds, used when realtime is down
    
    # Catalog
    SEARCH_DEFAULT_DISTANCE_KM: float = 50.0
    SEARCH_DEFAULT_LIMIT: int = 20
    PRODUCT_LIST_MAX_LIMIT: int = 50
    
    # CORS - comma-separated string
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001"
    
    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Accept CORS_ORIGINS as a comma-separated string or a list."""
        if isinstance(v, list):
            return ",".join(v)
        return v
    
    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
    
    def get_quick_offer_discounts(self) -> list[float]:
        """Get quick-offer discounts (fractions of the listed price)."""
        return [float(d) for d in self.QUICK_OFFER_DISCOUNTS.split(",") if d.strip()]
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 3
    
    # Streaming / SSE
    SSE_HEARTBEAT_INTERVAL: int = 15  # seconds between heartbeat events
    SSE_RETRY_TIMEOUT: int = 5  # seconds for SSE retry timeout


# Singleton instance
settings = Settings()
