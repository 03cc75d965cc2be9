import os
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PREDICT_URL = "http://localhost:5000/predict"
DEFAULT_TIMEZONE = "Asia/Colombo"


@dataclass
class Settings:
    mongo_uri: Optional[str]
    db_name: str
    patients_collection: str
    predict_url: str
    predict_timeout: float
    timezone_name: str
    page_size: int
    report_dir: str
    log_level: str

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone_name)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Read settings from the process environment (a local .env file is
        loaded on import). Only MONGO_URI has no default; the store gateway
        refuses to start without it.
        """
        page_size = int(os.getenv("PAGE_SIZE", "10"))
        if page_size <= 0:
            raise ValueError(f"PAGE_SIZE must be positive, got {page_size}")
        return cls(
            mongo_uri=os.getenv("MONGO_URI"),
            db_name=os.getenv("MONGO_DB_NAME", "keratoscan"),
            patients_collection=os.getenv("MONGO_PATIENTS_COLLECTION", "patients"),
            predict_url=os.getenv("PREDICT_URL", DEFAULT_PREDICT_URL),
            predict_timeout=float(os.getenv("PREDICT_TIMEOUT", "30")),
            timezone_name=os.getenv("REPORT_TIMEZONE", DEFAULT_TIMEZONE),
            page_size=page_size,
            report_dir=os.getenv("REPORT_DIR", os.getcwd()),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
