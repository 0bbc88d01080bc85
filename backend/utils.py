import math
import os
import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

SEGMENT_ALIAS_PATTERN = re.compile(r"[\s.]+")


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def normalize_segment_key(value: Optional[str]) -> str:
    """``"DL ENIGMA 2.0"`` and ``"DL_ENIGMA_2_0"`` map to the same key."""
    return SEGMENT_ALIAS_PATTERN.sub("_", str(value or "").strip().upper())


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


def app_timezone() -> ZoneInfo:
    return ZoneInfo(os.environ.get("APP_TIMEZONE", "UTC"))


def now_tz() -> datetime:
    return datetime.now(app_timezone())


def ensure_timezone(dt: datetime) -> datetime:
    # SQLite hands back naive values; they were written in the app timezone
    tz = app_timezone()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)
