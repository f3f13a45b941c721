from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_LANGUAGES = ("en", "hi")


class Settings(BaseSettings):
    # Read env from container + optionally from files
    model_config = SettingsConfigDict(
        env_file=(".env",),
        extra="ignore",
        case_sensitive=False,
    )

    # App
    ENVIRONMENT: str = Field(default="dev", validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"))
    APP_NAME: str = Field(default="sukoon_saarthi")
    LOG_LEVEL: str = Field(default="INFO")
    PORT: int = Field(default=8000)

    # Conversation sessions
    SESSION_TIMEOUT_MINUTES: int = Field(default=30)
    DEFAULT_LANGUAGE: str = Field(default="en")
    SESSION_BACKEND: str = Field(default="memory")  # "memory" | "redis"
    SESSION_SWEEP_INTERVAL_SECONDS: int = Field(default=300)
    TIMEZONE: str = Field(default="Asia/Kolkata")  # medication schedule times are local

    # Infrastructure
    DATABASE_URL: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/sukoon_saarthi",
    )
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    DOMAIN_STORE_TIMEOUT_SECONDS: float = Field(default=5.0)

    # Twilio WhatsApp
    TWILIO_ACCOUNT_SID: str = Field(default="")
    TWILIO_AUTH_TOKEN: str = Field(default="")
    TWILIO_WHATSAPP_NUMBER: str = Field(
        default="",
        validation_alias=AliasChoices("TWILIO_WHATSAPP_NUMBER", "TWILIO_PHONE_NUMBER"),
    )
    TRANSPORT_TIMEOUT_SECONDS: float = Field(default=10.0)
    SKIP_WEBHOOK_VALIDATION: bool = Field(default=False)  # honoured only outside production

    # OpenAI
    OPENAI_API_KEY: str = Field(default="")
    OPENAI_MODEL: str = Field(default="gpt-4-turbo")
    OPENAI_TRANSCRIBE_MODEL: str = Field(default="whisper-1")
    GENERATOR_TIMEOUT_SECONDS: float = Field(default=20.0)

    @property
    def default_language(self) -> str:
        lang = (self.DEFAULT_LANGUAGE or "").strip().lower()
        return lang if lang in SUPPORTED_LANGUAGES else "en"


settings = Settings()
