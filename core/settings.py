from functools import lru_cache
from typing import List, Literal

from pydantic import BaseModel, Field, PostgresDsn, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CustomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class AppSettings(CustomSettings):
    ENVIRONMENT: Literal["local", "dev", "prod", "test"] = Field(default="local")
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=False)
    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:8000",
            "http://localhost:8501",
        ]
    )


class PgDbSettings(CustomSettings):
    POSTGRES_ENGINE: str = Field(default="postgresql+asyncpg")
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: SecretStr = Field(default="postgres")
    POSTGRES_DB: str = Field(default="chat")
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    DATABASE_URL: PostgresDsn | str = Field(default="")
    DB_ECHO: bool = Field(default=False)
    AUTO_CREATE_TABLES: bool = Field(default=False)

    @model_validator(mode="before")
    def validate_postgres_dsn(cls, data: dict):
        if isinstance(data, dict) and not data.get("DATABASE_URL"):
            password = data.get("POSTGRES_PASSWORD", "postgres")
            if isinstance(password, SecretStr):
                password = password.get_secret_value()
            _built_uri = PostgresDsn.build(
                scheme=data.get("POSTGRES_ENGINE", "postgresql+asyncpg"),
                username=data.get("POSTGRES_USER", "postgres"),
                password=password,
                host=data.get("POSTGRES_HOST", "localhost"),
                port=int(data.get("POSTGRES_PORT", 5432)),
                path=data.get("POSTGRES_DB", "chat"),
            ).unicode_string()
            data["DATABASE_URL"] = _built_uri
        return data


class LLMSettings(CustomSettings):
    """Model provider settings.

    Any OpenAI-compatible chat completion endpoint works; the defaults point
    at DeepSeek.

    Env vars:
    - LLM_API_KEY
    - LLM_BASE_URL
    - LLM_MODEL
    - LLM_TEMPERATURE
    - LLM_TIMEOUT
    """

    LLM_API_KEY: SecretStr = Field(default="")
    LLM_BASE_URL: str = Field(default="https://api.deepseek.com")
    LLM_MODEL: str = Field(default="deepseek-chat")
    LLM_TEMPERATURE: float = Field(default=0.7)
    LLM_TIMEOUT: float = Field(default=60.0)


class ChatSettings(CustomSettings):
    """Conversation and chat loop behaviour.

    Env vars:
    - DEFAULT_CONVERSATION_TITLE
    - TITLE_MAX_LENGTH
    - MAX_STEPS
    - LOAD_HISTORY
    - DEFAULT_USER_ID
    - CONVERSATION_ID_HEADER
    """

    DEFAULT_CONVERSATION_TITLE: str = Field(default="New Conversation")
    TITLE_MAX_LENGTH: int = Field(default=50, ge=1)
    MAX_STEPS: int = Field(default=5, ge=1)
    LOAD_HISTORY: bool = Field(default=False)
    DEFAULT_USER_ID: int = Field(default=1)
    CONVERSATION_ID_HEADER: str = Field(default="X-Conversation-Id")


class UiSettings(CustomSettings):
    """Configuration for the Streamlit UI to reach API endpoints.

    Set via env vars:
    - API_BASE_URL
    - ENDPOINT_CHAT
    - ENDPOINT_CONVERSATIONS
    - UI_REQUEST_TIMEOUT
    """

    API_BASE_URL: str = Field(default="http://localhost:8000")
    ENDPOINT_CHAT: str = Field(default="/api/chat")
    ENDPOINT_CONVERSATIONS: str = Field(default="/api/conversations")
    UI_REQUEST_TIMEOUT: float = Field(default=60.0)


class Settings(BaseModel):
    APP: AppSettings = Field(default_factory=AppSettings)
    DATABASE: PgDbSettings = Field(default_factory=PgDbSettings)
    LLM: LLMSettings = Field(default_factory=LLMSettings)
    CHAT: ChatSettings = Field(default_factory=ChatSettings)
    UI: UiSettings = Field(default_factory=UiSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SETTINGS = get_settings()
