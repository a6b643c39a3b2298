import os
from typing import List
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Always load .env from root
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
load_dotenv(os.path.join(BASE_DIR, ".env"))


class Settings(BaseSettings):
    JWT_SECRET: str | None = os.getenv("JWT_SECRET")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    DB_USER: str | None = os.getenv("DB_USER")
    DB_PASS: str | None = os.getenv("DB_PASS")
    DB_HOST: str | None = os.getenv("DB_HOST")
    DB_PORT: str | None = os.getenv("DB_PORT")
    FACILITY_DB_NAME: str | None = os.getenv("FACILITY_DB_NAME")
    # Full URL wins over the individual DB_* parts (sqlite:// in tests)
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", 2))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", 2))

    # Money
    CURRENCY: str = os.getenv("CURRENCY", "ETB")
    CURRENCY_MINOR_UNITS: int = int(os.getenv("CURRENCY_MINOR_UNITS", 2))
    DEFAULT_VAT_RATE: float = float(os.getenv("DEFAULT_VAT_RATE", 15))

    # Invoices
    INVOICE_NUMBER_PREFIX: str = os.getenv("INVOICE_NUMBER_PREFIX", "INV")
    INVOICE_NUMBER_MAX_RETRIES: int = int(
        os.getenv("INVOICE_NUMBER_MAX_RETRIES", 3))
    # due date offset when neither the caller nor the lease terms give one
    INVOICE_DUE_DAYS: int = int(os.getenv("INVOICE_DUE_DAYS", 7))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: List[str] = [
        "http://localhost:8080",
        "http://127.0.0.1:8002",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

FACILITY_DATABASE_URL = settings.DATABASE_URL or (
    f"postgresql+psycopg2://{settings.DB_USER}:{settings.DB_PASS}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.FACILITY_DB_NAME}?sslmode=require"
)
