# architect/settings.py

import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Configuration ---
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "your-project-id")
REGION = os.getenv("GOOGLE_CLOUD_REGION", "us-central1")

DATABASE_URL        = os.getenv("DATABASE_URL", "")
DB_HOST             = os.getenv("DB_HOST", "localhost")
DB_PORT             = int(os.getenv("DB_PORT", "5432"))
DB_NAME             = os.getenv("DB_NAME", "prompt_architect")
DB_USER             = os.getenv("DB_USER", "postgres")
DB_PASSWORD         = os.getenv("DB_PASSWORD", "")
DB_SECRET_ID        = os.getenv("DB_SECRET_ID", "")

IS_LOCAL_DB = (DB_HOST == "localhost") and not DATABASE_URL
LOCAL_DATABASE_URL = "sqlite:///prompt_architect.db"

OPENAI_API_KEY          = os.getenv("OPENAI_API_KEY", "")
OPENAI_EMBEDDING_MODEL  = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
LLM_TIMEOUT             = float(os.getenv("LLM_TIMEOUT", "120"))

PIPELINE_CONFIG_PATH = os.getenv("PIPELINE_CONFIG_PATH", "")

INTERVIEW_PROFILE = os.getenv("INTERVIEW_PROFILE", "extended")
GENERATE_PROFILE = os.getenv("GENERATE_PROFILE", "core")

CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

_logging_configured = False


def configure_logging() -> None:
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    _logging_configured = True
