import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

from . import settings

logger = logging.getLogger(__name__)


def get_date_suffix_for_filename() -> str:
    """Returns the current date as a YYYYMMDD string for filenames."""
    return datetime.now().strftime("%Y%m%d")


def read_text(file_path: Path) -> str | None:
    """
    Reads an uploaded text file with a multi-stage encoding fallback:
    1. UTF-8 with BOM support ('utf-8-sig').
    2. Latin-1, which can decode any byte sequence.
    Returns None when the file is missing.
    """
    try:
        return file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        logger.info(
            f"UTF-8 decoding failed for {file_path.name}. Retrying with 'latin-1'."
        )
        return file_path.read_text(encoding="latin-1")
    except FileNotFoundError:
        logger.error(f"File not found at {file_path}.")
        return None


def to_local(moment: datetime) -> datetime:
    """Converts an aware timestamp to the configured local zone; naive ones are already local."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(settings.LOCAL_TIMEZONE))


def numeric_id_key(item_id: str) -> tuple[int, int, str]:
    """Sort key ordering numeric ids by value, with non-numeric ids after them."""
    text = str(item_id).strip()
    if text.isdigit():
        return (0, int(text), text)
    return (1, 0, text)


def item_image_url(image: Optional[str]) -> str:
    """Returns the image URL when it looks like an absolute URL, otherwise the placeholder."""
    if not image or not image.strip():
        return settings.DEFAULT_IMAGE
    parsed = urlparse(image.strip())
    if not parsed.scheme or not parsed.netloc:
        return settings.DEFAULT_IMAGE
    return image.strip()


def format_duration(seconds: float) -> str:
    """
    Formats a duration like '1h 5m 3s'. Hours are omitted when zero, minutes are
    shown once hours or minutes are non-zero, seconds are always shown.
    Negative durations are reported as zero.
    """
    if seconds < 0:
        return "0h 0m 0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    remaining = int(seconds % 60)

    if hours == 0 and minutes == 0 and remaining == 0:
        return "0h 0m 0s"

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or hours > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{remaining}s")
    return " ".join(parts)
