from typing import Optional
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PostgresSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    host: str = Field(default="localhost", alias="POSTGRES_HOST")
    port: int = Field(default=5432, alias="POSTGRES_DB_PORT")
    db_name: str = Field(default="kuis_live", alias="POSTGRES_DB_NAME")
    user: str = Field(default="postgres", alias="POSTGRES_DB_USER")
    password: str = Field(default="postgres", alias="POSTGRES_DB_PASSWORD")
    # Full SQLAlchemy URL; wins over the individual fields when set
    url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    @computed_field
    def connection_string(self) -> str:
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"
        )


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    issuer: str = Field(default="https://auth.example.com", alias="JWT_ISSUER")
    application_id: str = Field(default="kuis-live", alias="JWT_APPLICATION_ID")
    token_lifetime_seconds: int = Field(
        default=3600, alias="JWT_TOKEN_LIFETIME_SECONDS"
    )
    key_file: str = Field(default="jwt_rsa_key.pem", alias="JWT_KEY_FILE")


class QuizSettings(BaseSettings):
    """Live quiz policy knobs."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    code_length: int = Field(default=6, alias="QUIZ_CODE_LENGTH")
    code_max_retries: int = Field(default=5, alias="QUIZ_CODE_MAX_RETRIES")
    timer_min_seconds: int = Field(default=10, alias="QUIZ_TIMER_MIN_SECONDS")
    timer_max_seconds: int = Field(default=300, alias="QUIZ_TIMER_MAX_SECONDS")
    max_questions: int = Field(default=50, alias="QUIZ_MAX_QUESTIONS")
    base_points: int = Field(default=500, alias="QUIZ_BASE_POINTS")
    speed_bonus_points: int = Field(default=500, alias="QUIZ_SPEED_BONUS_POINTS")
    submit_max_retries: int = Field(default=3, alias="QUIZ_SUBMIT_MAX_RETRIES")
    poll_interval_seconds: float = Field(
        default=3.0, alias="QUIZ_POLL_INTERVAL_SECONDS"
    )
    stream_max_seconds: int = Field(default=3600, alias="QUIZ_STREAM_MAX_SECONDS")

    @computed_field
    def max_points_per_question(self) -> int:
        return self.base_points + self.speed_bonus_points


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    name: str = Field(default="kuis-live", alias="APP_NAME")
    version: str = Field(default="v1", alias="API_VERSION")
    port: int = Field(default=9000, alias="APP_PORT")
    mode: str = Field(default="prod", alias="MODE")
    jwt_secret: str = Field(alias="JWT_SECRET")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], alias="CORS_ORIGINS"
    )

    @computed_field
    def is_production(self) -> bool:
        return self.mode != "dev"

    @computed_field
    def is_testing(self) -> bool:
        return self.mode == "test"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=lambda: AppSettings())
    postgres: PostgresSettings = Field(default_factory=lambda: PostgresSettings())
    jwt: JWTSettings = Field(default_factory=lambda: JWTSettings())
    quiz: QuizSettings = Field(default_factory=lambda: QuizSettings())

    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    openrouter_api_key: Optional[str] = Field(default=None, alias="OPENROUTER_API_KEY")

    # Model provider selection for question generation: "google" or "openrouter"
    model_provider: str = Field(default="google", alias="MODEL_PROVIDER")
    openrouter_model: str = Field(
        default="x-ai/grok-code-fast-1", alias="OPENROUTER_MODEL"
    )


settings = Settings()
