from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Pydantic Settings reads env vars matching field names (case-insensitive),
    and a .env file if present.
    """

    # Include each error's stack (cause chain included) in HTTP error responses.
    # Leave off in production, stacks reveal file paths and code.
    expose_error_traces: bool = False

    # Seal the error registry once the app starts serving, so a declaration
    # made while handling requests fails loudly instead of racing.
    seal_registry_on_startup: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
