"""Application settings and validation."""

import os
from pathlib import Path

DEFAULT_JWT_SECRET = "change_me_for_prod"
DEFAULT_ADMIN_PASSWORD = "admin"


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    ADMIN_USERNAME: str
    ADMIN_PASSWORD: str
    UPLOAD_DIR: Path
    MAX_UPLOAD_BYTES: int
    QUIZ_CODE_MAX_ATTEMPTS: int
    LOGIN_RATE_LIMIT_PER_MIN: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "12"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD)
        default_uploads = Path(__file__).resolve().parent.parent / "uploads"
        self.UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(default_uploads))).expanduser()
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))  # 10 MB default
        self.QUIZ_CODE_MAX_ATTEMPTS = int(os.getenv("QUIZ_CODE_MAX_ATTEMPTS", "20"))
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "10"))
        self._validate()

    def _validate(self):
        if self.ENV == "dev":
            return
        if not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.ADMIN_PASSWORD == DEFAULT_ADMIN_PASSWORD:
            raise RuntimeError("ADMIN_PASSWORD must be set to a non-default value in non-dev environments")


settings = Settings()
