from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SUMMARY_PROMPT = """You are an assistant analyzing a chat conversation.
Please:
1. Summarize the overall conversation in 3-4 sentences.
2. Extract key points or decisions made.
3. If there are any action items, list them clearly.

Chat:
{transcript}"""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # MongoDB
    MONGODB_URI: str = Field(default="mongodb://localhost:27017")
    MONGODB_DB: str = Field(default="chatapp")

    # Redis bus / presence (disabled when unset)
    REDIS_URL: Optional[str] = None
    PRESENCE_TTL_SECONDS: int = Field(default=60, ge=5)

    # Auth
    SECRET_KEY: str = Field(default="change-me")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24)

    # Summarization engine
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    SUMMARY_MODEL: str = Field(default="gpt-4o-mini")
    SUMMARY_TEMPERATURE: float = Field(default=0.3)
    SUMMARY_TIMEOUT_SECONDS: float = Field(default=30.0)
    SUMMARY_WINDOW: int = Field(default=100, ge=1)
    SUMMARY_PROMPT: str = Field(default=DEFAULT_SUMMARY_PROMPT)

    # Media storage (S3)
    MEDIA_BUCKET: Optional[str] = None
    MEDIA_REGION: str = Field(default="us-east-1")
    MEDIA_PREFIX: str = Field(default="chat-media")
    MEDIA_PUBLIC_BASE_URL: Optional[str] = None

    LOG_LEVEL: str = Field(default="INFO")


settings = Settings()
