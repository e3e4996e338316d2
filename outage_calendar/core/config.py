import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

class Settings:
    TIMEZONE = os.getenv("TIMEZONE", "Europe/Kyiv")
    SOURCE_URL = os.getenv("SOURCE_URL", "https://www.dtek-krem.com.ua/ua/shutdowns")
    ADDRESSES_FILE = os.getenv("ADDRESSES_FILE", "config.json")
    STATE_PATH = os.getenv("STATE_PATH", "state.json")
    DB_PATH = os.getenv("DB_PATH", "outages.db")
    CALENDAR_DIR = os.getenv("CALENDAR_DIR", "calendars")
    REMINDER_MINUTES = int(os.getenv("REMINDER_MINUTES", "30"))
    CHECK_INTERVAL_MINUTES = int(os.getenv("CHECK_INTERVAL_MINUTES", "15"))
    REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "30"))

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)

settings = Settings()
