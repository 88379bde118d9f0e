from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "DNS Generator"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Location catalog (file path or http(s) URL)
    LOCATIONS_SOURCE: str = "locations.json"

    # Country lookup
    LOOKUP_URL: str = "https://api.iplocation.net/"
    LOOKUP_TIMEOUT_SECONDS: float = 5.0

    # Generation
    BATCH_SIZE: int = 5

    # Rate limiting
    RATE_LIMIT_WINDOW_SECONDS: float = 3.0
    RATE_LIMIT_THRESHOLD: int = 5
    RATE_LIMIT_COOLDOWN_SECONDS: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
