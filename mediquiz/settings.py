import os

# Environment variables > defaults

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mediquiz.db")

# OpenAI / compatible API
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
OPENAI_ANALYSIS_MODEL = os.getenv("OPENAI_ANALYSIS_MODEL", "gpt-4o")
OPENAI_GENERATION_MODEL = os.getenv("OPENAI_GENERATION_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "60"))
GENERATION_BATCH_SIZE = int(os.getenv("GENERATION_BATCH_SIZE", "5"))

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
AI_RATE_LIMIT = os.getenv("AI_RATE_LIMIT", "5/minute")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
