from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"

    # Throttling defaults; a ThrottleConfig built without overrides uses these
    BRUTE_FREE_RETRIES: int = 2
    BRUTE_MIN_WAIT_MS: int = 500
    BRUTE_MAX_WAIT_MS: int = 1000 * 60 * 15  # 15 minutes
    BRUTE_LIFETIME_SECONDS: int = 0  # 0 = derive from the delay schedule
    BRUTE_REFRESH_TIMEOUT_ON_REQUEST: bool = True
    BRUTE_ATTACH_RESET_TO_REQUEST: bool = True

    # Number of trusted proxies in front of the app (X-Forwarded-For entries to skip from the right)
    BRUTE_PROXY_DEPTH: int = 0

    # Logging
    LOG_LEVEL: str = "INFO"


settings = Settings()
