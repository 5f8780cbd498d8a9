"""
Configuration Settings
======================
Centralized configuration for the application using environment variables.
"""

import os
import logging
from typing import List
from pathlib import Path
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Try multiple locations for .env file
env_paths = [
    Path(__file__).parent.parent.parent / ".env",  # Root of project
    Path(__file__).parent.parent / ".env",
    Path.cwd() / ".env",
]

for env_path in env_paths:
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
        logger.debug(f"Loaded .env from: {env_path}")
        break


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application Info
    APP_NAME: str = "Policy Extraction Service"
    APP_DESCRIPTION: str = "Extracts, validates and exports structured fields from insurance policy documents"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # OpenAI Configuration
    OPENAI_API_KEY: str = ""
    AI_MODEL: str = "gpt-4o-mini"
    TEMPERATURE: float = 0.0
    MAX_TOKENS: int = 4096
    EXTRACTION_TIMEOUT_SECONDS: float = 120.0

    # Confidence placeholder assigned to every successful extraction.
    # The model returns no calibrated score yet.
    BASELINE_CONFIDENCE: float = 98.0
    VERIFIED_CONFIDENCE_THRESHOLD: float = 95.0

    # Master data backend (insurance companies, policy categories)
    MASTER_DATA_BASE_URL: str = "https://crm.simplyfinsure.com/api"
    MASTER_DATA_TIMEOUT_SECONDS: int = 15
    COMPANIES_ENDPOINT: str = "/master/insurance-companies.php"
    POLICY_TYPES_ENDPOINT: str = "/master/policy-types.php"

    # File Upload Settings
    MAX_FILE_SIZE: int = 20 * 1024 * 1024  # 20MB
    MAX_FILE_SIZE_MB: int = 20  # 20MB for display
    DEFAULT_MIME_TYPE: str = "application/pdf"
    ALLOWED_MIME_TYPES: List[str] = [
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/webp",
    ]

    # CORS Settings
    CORS_ORIGINS: List[str] = ["*"]  # In production, specify actual origins

    LOG_FILE: str = "app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra environment variables


# Create global settings instance
settings = Settings()

if os.getenv("DEBUG", "false").lower() == "true":
    logger.info(f"AI_MODEL: {settings.AI_MODEL}")
    logger.info(f"OPENAI_API_KEY: {'SET' if settings.OPENAI_API_KEY else 'NOT SET'}")
    logger.info(f"MASTER_DATA_BASE_URL: {settings.MASTER_DATA_BASE_URL}")
