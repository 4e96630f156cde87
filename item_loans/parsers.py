import csv
import io
import logging
from pathlib import Path

from . import settings
from .schemas import CandidateItem
from .utils import read_text

logger = logging.getLogger(__name__)


def parse_item_csv(text: str) -> list[CandidateItem]:
    """
    Parses item CSV text into candidate rows.
    - Blank lines are skipped and every field is trimmed.
    - Only the first four columns are used; missing ones become empty strings.
    - A leading header row is dropped when its first field is literally 'item_id'.
    """
    candidates = []
    for fields in csv.reader(io.StringIO(text)):
        if not any(field.strip() for field in fields):
            continue
        values = [field.strip() for field in fields[: len(settings.CSV_COLUMNS)]]
        values += [""] * (len(settings.CSV_COLUMNS) - len(values))
        candidates.append(dict(zip(settings.CSV_COLUMNS, values)))

    if candidates and candidates[0]["item_id"] == "item_id":
        candidates.pop(0)

    return [CandidateItem(**row) for row in candidates]


def load_item_csv(file_path: Path) -> list[CandidateItem] | None:
    """Loads and parses an uploaded item CSV file. Returns None if it cannot be read."""
    text = read_text(file_path)
    if text is None:
        return None

    items = parse_item_csv(text)
    logger.info(f"✅ Parsed {len(items)} rows from {file_path.name}.")
    return items


def csv_template() -> str:
    """The downloadable template: the header plus one example row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(settings.CSV_COLUMNS)
    writer.writerow(settings.CSV_TEMPLATE_EXAMPLE)
    return buffer.getvalue()


def write_csv_template(file_path: Path | None = None) -> Path:
    if file_path is None:
        settings.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        file_path = settings.OUTPUT_DIR / settings.TEMPLATE_FILENAME
    file_path.write_text(csv_template(), encoding="utf-8")
    logger.info(f"✅ CSV template saved to: {file_path}")
    return file_path
