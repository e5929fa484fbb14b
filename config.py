import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "dev-secret-key-change-me"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./finance_tracker.db")
SECRET_KEY = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

BUDGET_SWEEP_ENABLED = os.getenv("BUDGET_SWEEP_ENABLED", "true").lower() in ("1", "true", "yes")
BUDGET_SWEEP_HOUR = int(os.getenv("BUDGET_SWEEP_HOUR", "0"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]


def warn_on_insecure_defaults():
    if SECRET_KEY == DEFAULT_SECRET_KEY:
        logger.warning("SECRET_KEY is not set in the environment (.env); using the development key")
