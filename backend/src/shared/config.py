from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "EGS Onboarding"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Signing backend: "native" (cryptography) or "openssl" (external binary)
    EGS_SIGNING_BACKEND: str = "native"
    OPENSSL_BINARY: str = "openssl"
    OPENSSL_TIMEOUT_SECONDS: float = 30.0

    # Staging of secret material for the openssl backend
    EGS_STAGING_DIR: Optional[str] = None

    # CSR profile: built-in environment or a JSON profile file
    EGS_ENVIRONMENT: str = "sandbox"
    EGS_CSR_PROFILE_PATH: Optional[str] = None


settings = Settings()
