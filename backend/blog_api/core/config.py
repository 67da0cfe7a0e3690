from pydantic_settings import BaseSettings
from typing import Union

DEFAULT_SECRET_KEY = "your-secret-key-change-in-production"


class Settings(BaseSettings):
    # SQLAlchemy URL for the blog database; override via DATABASE_URL
    DATABASE_URL: str = "sqlite:///./blog.db"

    # Session tokens and password hashing
    # SECRET_KEY signs session tokens; the default is logged as a warning at startup
    # Rotating it invalidates every issued token
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"  # Token signing algorithm
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7  # Session token validity window
    BCRYPT_ROUNDS: int = 12  # bcrypt work factor

    # Backup settings
    BACKUP_DIR: str = "./backups"  # Directory where snapshot files are written
    MAX_BACKUP_SIZE: int = 50 * 1024 * 1024  # 50MB - maximum restore upload size

    # Automatic backups - off unless explicitly enabled
    AUTO_BACKUP_ENABLED: bool = False
    AUTO_BACKUP_INTERVAL_HOURS: int = 24
    AUTO_BACKUP_INCLUDE_IMAGES: bool = False
    BACKUP_RETENTION: int = 10  # 0 keeps every file

    # Origins of the admin SPA and public site
    # Comma-separated string or list
    CORS_ORIGINS: Union[str, list[str]
                        ] = "http://localhost:5173,http://localhost:3000"

    LOG_LEVEL: str = "INFO"

    def get_cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS string into list"""
        if isinstance(self.CORS_ORIGINS, str):
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        return self.CORS_ORIGINS if isinstance(self.CORS_ORIGINS, list) else []

    def uses_default_secret(self) -> bool:
        """True when SECRET_KEY was never overridden"""
        return self.SECRET_KEY == DEFAULT_SECRET_KEY

    class Config:
        # .env is optional; real environment variables take precedence
        env_file = ".env"
        case_sensitive = True  # Environment variable names are case-sensitive


settings = Settings()
