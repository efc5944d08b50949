from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HOSTEL_")

    app_env: str = "dev"
    database_url: str = "sqlite:///./data/hostel.db"
    jwt_secret: str = "changeme"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    reset_token_expire_minutes: int = 30
    bcrypt_rounds: int = 12
    upload_dir: str = "./data/uploads"
    max_upload_bytes: int = 5 * 1024 * 1024
    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"
    student_email_domain: str = "@uni.com"
    warden_email_domain: str = "@hostel.com"


settings = Settings()  # reads from env
