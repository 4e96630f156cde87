import json
import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from . import settings
from . import utils
from .schemas import ItemStatistic, ValidatedItem

logger = logging.getLogger(__name__)


def save_validation_report(validated_data: list[ValidatedItem]) -> Path:
    """Saves the per-row validation result to CSV and conditionally to JSON, with dated filenames."""
    settings.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    date_suffix = utils.get_date_suffix_for_filename()

    csv_path = (
        settings.OUTPUT_DIR / f"{settings.VALIDATION_FILENAME_BASE}_{date_suffix}.csv"
    )
    json_path = (
        settings.OUTPUT_DIR / f"{settings.VALIDATION_FILENAME_BASE}_{date_suffix}.json"
    )

    df = pd.DataFrame(
        [
            {
                "item_id": item.external_id,
                "name": item.display_name,
                "genre": item.genre,
                "manager": item.manager,
                "valid": item.is_valid,
                "errors": "; ".join(item.errors),
            }
            for item in validated_data
        ],
        columns=["item_id", "name", "genre", "manager", "valid", "errors"],
    )
    df.to_csv(csv_path, index=False)
    logger.info(f"✅ Validation report saved to: {csv_path}")

    if settings.SAVE_JSON_OUTPUT:
        with open(json_path, "w", encoding="utf-8") as f:
            json_data = [item.model_dump(by_alias=True) for item in validated_data]
            json.dump(json_data, f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"✅ JSON output saved to: {json_path}")

    return csv_path


def statistics_filename(event_id: Optional[str], event_name: Optional[str], merged: bool) -> str:
    date_suffix = utils.get_date_suffix_for_filename()
    merge_suffix = "_merged" if merged else ""
    if event_id and event_name:
        return f"{date_suffix}_{settings.STATISTICS_FILENAME_BASE}_{event_id}-{event_name}{merge_suffix}.csv"
    if event_id:
        return f"{date_suffix}_{settings.STATISTICS_FILENAME_BASE}_{event_id}{merge_suffix}.csv"
    return f"{date_suffix}_{settings.STATISTICS_FILENAME_BASE}{merge_suffix}.csv"


def save_statistics(
    df: pd.DataFrame,
    stats: list[ItemStatistic],
    event_id: Optional[str] = None,
    event_name: Optional[str] = None,
    merged: bool = False,
) -> Path | None:
    """Saves the statistics export to CSV and conditionally the raw statistics to JSON."""
    if df.empty:
        logger.warning("No statistics to save.")
        return None

    settings.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    csv_path = settings.OUTPUT_DIR / statistics_filename(event_id, event_name, merged)
    df.to_csv(csv_path, index=False)
    logger.info(f"✅ Statistics saved to: {csv_path}")

    if settings.SAVE_JSON_OUTPUT:
        json_path = csv_path.with_suffix(".json")
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump([stat.model_dump() for stat in stats], f, indent=2, ensure_ascii=False)
        logger.info(f"✅ JSON output saved to: {json_path}")

    return csv_path
