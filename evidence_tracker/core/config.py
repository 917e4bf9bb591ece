import base64
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Evidence Custody Tracker"
    secret_key: str
    jwt_alg: str = "HS256"
    session_expire_minutes: int = 24 * 60
    session_cookie_name: str = "auth-token"
    cookie_secure: bool = False
    app_aes_key_base64: str
    database_url: str = "sqlite:///./evidence.db"

    # Photo storage
    storage_dir: str = "storage"
    max_photo_size: int = 25 * 1024 * 1024  # 25MB
    allowed_photo_mime_types: list[str] = [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
    ]

    log_level: str = "INFO"

    # Comma-separated list of exact origins
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def aes_key(self) -> bytes:
        """Decode the base64 AES key to bytes"""
        return base64.b64decode(self.app_aes_key_base64)

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
