import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "app")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
SANDBOX_MODEL = os.getenv("SANDBOX_MODEL", "gpt-4.1-mini")

PROMPT_SERVICE_URL = os.getenv("PROMPT_SERVICE_URL", "http://localhost:8000")
ALLOWED_DOMAINS = [d.strip().lower() for d in os.getenv("ALLOWED_DOMAINS", "tracknamic.com,tracknamic.ai").split(",") if d.strip()]

FEED_PAGE_SIZE = int(os.getenv("FEED_PAGE_SIZE", 5))
ACTIVITY_LIMIT = int(os.getenv("ACTIVITY_LIMIT", 20))
LOCAL_STORE_PATH = os.getenv("LOCAL_STORE_PATH", ".prompt-lab.json")

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
