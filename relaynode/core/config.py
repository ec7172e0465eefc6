# relaynode/core/config.py

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Document store settings
    STORE_URL: str = Field(default="mongodb://localhost:27017", description="Connection URL, credentials included")
    STORE_DB: str = Field(default="relay")
    STORE_COLLECTION: str = Field(default="messages")
    STORE_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # Node settings
    NODE_ID: str = Field(default="node-1", description="Identity reported by /health")
    PORT: int = Field(default=4001)
    LOG_LEVEL: str = Field(default="INFO")

settings = Settings()
