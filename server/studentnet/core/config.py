# StudentNetwork/server/studentnet/core/config.py

import logging
from typing import List, Literal, Union, Any

# Import Pydantic v2 components
from pydantic import field_validator, ConfigDict
from pydantic_settings import BaseSettings

# --- Logging Setup ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


StoreBackend = Literal["mongodb", "memory"]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.
    Uses Pydantic v2 features.
    """
    # --- App Configuration ---
    APP_NAME: str = "Student Network API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    TESTING_MODE: bool = False
    SEED_DEMO_DATA: bool = False

    # --- Document Store ---
    # "memory" keeps everything in-process (tests, local demos)
    STORE_BACKEND: StoreBackend = "mongodb"
    MONGODB_URL: str = "mongodb://localhost:27017/?replicaSet=rs0"
    MONGODB_DB: str = "student_network_db"
    MONGODB_CONNECT_TIMEOUT_MS: int = 5000
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000
    MONGODB_COLLECTION_USERS: str = "users"
    MONGODB_COLLECTION_CONNECTION_REQUESTS: str = "connection_requests"
    MONGODB_COLLECTION_CONNECTIONS: str = "connections"
    MONGODB_COLLECTION_CHATS: str = "chats"
    MONGODB_COLLECTION_MESSAGES: str = "messages"
    MONGODB_COLLECTION_NOTIFICATIONS: str = "notifications"

    # --- Security Configuration ---
    JWT_SECRET_KEY: str = "your_super_secret_key_please_change"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # --- CORS Configuration ---
    CORS_ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # --- Notification fan-out ---
    NOTIFY_ON_CONNECTION_REQUEST: bool = True
    NOTIFY_ON_CONNECTION_ACCEPTED: bool = True
    NOTIFY_ON_MESSAGE: bool = False

    # --- Pydantic V2 Field Validators ---
    @field_validator('CORS_ALLOWED_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: Any) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',') if i.strip()]
        elif isinstance(v, list):
            return [str(i).strip() for i in v if str(i).strip()]
        return v

    @field_validator('STORE_BACKEND', mode='before')
    @classmethod
    def normalize_backend(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    # --- Pydantic V2 Model Configuration ---
    model_config = ConfigDict(
        case_sensitive=True,
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )


def get_settings() -> Settings:
    """Loads and returns the application settings."""
    logger.info("Loading application settings...")
    try:
        settings_instance = Settings()
        logger.info(f"Settings loaded for APP_NAME: {settings_instance.APP_NAME}")
        logger.info(f"Store backend: {settings_instance.STORE_BACKEND}")
        if settings_instance.STORE_BACKEND == "mongodb":
            logger.info(f"MongoDB DB: {settings_instance.MONGODB_DB}")
        logger.info(f"CORS Origins: {settings_instance.CORS_ALLOWED_ORIGINS}")
        return settings_instance
    except Exception as e:
        logger.critical(f"FATAL: Failed to load settings: {e}", exc_info=True)
        raise SystemExit(f"Could not load settings: {e}")


# Create a single settings instance for the application to import
settings = get_settings()
