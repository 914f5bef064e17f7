from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", case_sensitive=True)

    DATABASE_URL: str = "sqlite+aiosqlite:///./crm.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Redis configuration for caching category mappings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CACHE_TTL: int = 300  # 5 minutes

    # Mailbox owner address; mail sent from it is treated as outbound
    MAILBOX_ADDRESS: str = ""

    # Business rule configuration
    FOLLOW_UP_DEFAULT_DAYS: int = 3
    LEAD_DUPLICATE_WINDOW_DAYS: int = 7
    DEFAULT_OPPORTUNITY_OWNER: str = "me"
    DEFAULT_CURRENCY: str = "USD"
    AUTO_CREATE_SENDER_CONTACTS: bool = True
    REPROCESS_BATCH_LIMIT: int = 100

    # Microsoft Graph, used only to fetch missing message categories
    GRAPH_API_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_TIMEOUT_SECONDS: float = 10.0

    # CORS: comma-separated origins
    CORS_ORIGINS: str = "http://localhost:3000"
    SYNC_RATE_LIMIT: str = "30/minute"


settings = Settings()
