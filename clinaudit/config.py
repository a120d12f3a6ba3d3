from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CLINAUDIT_BACKEND__",
        env_file=".env",
        extra="ignore",
    )

    base_url: str = "http://localhost:5007"
    timeout_s: float = 120.0
    max_upload_bytes: int = Field(16 * 1024 * 1024, ge=1)

    @property
    def api_url(self) -> str:
        return self.base_url.rstrip("/") + "/api"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CLINAUDIT_",
        env_file=".env",
        extra="ignore",
    )

    log_level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    backend: BackendConfig = BackendConfig()


settings = Settings()
