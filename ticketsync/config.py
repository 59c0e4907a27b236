"""
AI·GOTCHA ticket sync - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # Firebase Realtime Database
    firebase_database_url: str = ""
    firebase_service_account_json: str = ""
    google_application_credentials: str = ""

    # Parties
    customer_user_id: str = "user-123"
    admin_agent_id: str = "agent001"
    tool_version: str = "AI.GOTCHA Client v1.0"

    # Ticket ids: "store" (shared sequence in the database) or "local"
    ticket_id_strategy: str = "store"
    local_state_path: str = ".ticketsync_state.json"

    # Admin console message rules
    agent_retention_enabled: bool = True
    suppress_stamped_agent_messages: bool = True

    # LLM
    openai_api_key: str = ""
    google_api_key: str = ""
    suggestion_provider: str = "openai"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def firebase_configured(self) -> bool:
        """True when the database URL looks like a Realtime Database URL"""
        url = self.firebase_database_url
        return url.startswith("https://") and (
            ".firebaseio.com" in url or ".firebasedatabase.app" in url
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
