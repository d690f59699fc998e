import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    def __init__(self):
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///./competition.db")
        self.debug: bool = os.getenv("DEBUG", "False").lower() == "true"

        # Connection pool (ignored for SQLite)
        self.db_pool_size: int = int(os.getenv("DB_POOL_SIZE", 10))
        self.db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", 20))
        # Only passed to PostgreSQL drivers, e.g. "require" in production
        self.db_sslmode: str = os.getenv("DB_SSLMODE", "")

        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Score upload limits
        self.score_upload_max_records: int = int(os.getenv("SCORE_UPLOAD_MAX_RECORDS", 5000))
        self.score_upload_max_errors: int = int(os.getenv("SCORE_UPLOAD_MAX_ERRORS", 100))


settings = Settings()
