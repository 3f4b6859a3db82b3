import os

from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return int(default)


class Settings:
    TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000").strip()
    PUBLIC_HOST = os.getenv("PUBLIC_HOST", "http://localhost:3000").strip()

    LEDGER_STORE = os.getenv("LEDGER_STORE", "json").strip().lower()
    LEDGER_DATA_DIR = os.getenv("LEDGER_DATA_DIR", ".").strip()
    EMPLOYEES_FILE = os.getenv("EMPLOYEES_FILE", "employees.json").strip()
    LOYALTY_FILE = os.getenv("LOYALTY_FILE", "loyalty.json").strip()
    SCANS_FILE = os.getenv("SCANS_FILE", "scans.json").strip()
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./loyalty.db").strip()

    STARTING_POINTS = _get_int("STARTING_POINTS", 100)
    POINTS_PER_SCAN = _get_int("POINTS_PER_SCAN", 10)
    DAILY_POINTS = _get_int("DAILY_POINTS", 10)

    STORE_RETRY_AFTER_SECONDS = _get_int("STORE_RETRY_AFTER_SECONDS", 5)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()


settings = Settings()
