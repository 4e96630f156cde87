import logging
from typing import Mapping, Sequence, Union

import pandas as pd

from . import settings
from .schemas import AggregationResult, ItemMeta, ItemStatistic, LoanRecord
from .utils import format_duration, item_image_url, numeric_id_key, to_local

logger = logging.getLogger(__name__)

HOURS = [f"{hour:02d}:00" for hour in range(24)]

SORT_KEYS = ("loan_count", "total_duration", "average_duration", "item_id", "name")


def _records_frame(records: Sequence[LoanRecord]) -> pd.DataFrame:
    """
    One row per loan record with its local start hour, ten-minute slot and,
    for completed loans with a sane end time, the duration in seconds.
    """
    rows = []
    for record in records:
        start = to_local(record.start_time)
        duration = float("nan")
        if record.end_time is not None:
            began, ended = record.start_time, record.end_time
            if (began.tzinfo is None) != (ended.tzinfo is None):
                # Naive timestamps are local; compare both as local wall time.
                began = start.replace(tzinfo=None)
                ended = to_local(ended).replace(tzinfo=None)
            if ended >= began:
                duration = (ended - began).total_seconds()
            else:
                logger.warning(
                    f"⚠️ Invalid duration for record {record.id}. "
                    f"Start: {record.start_time.isoformat()}, End: {record.end_time.isoformat()}"
                )
        rows.append(
            {
                "item_id": record.item_id,
                "start_hour": start.hour,
                "slot": (start.hour * 60 + start.minute) // settings.SLOT_MINUTES,
                "duration": duration,
            }
        )
    return pd.DataFrame(rows, columns=["item_id", "start_hour", "slot", "duration"])


def _meta_for(item_meta: Mapping[str, Union[ItemMeta, dict]], item_id: str) -> ItemMeta:
    meta = item_meta.get(item_id)
    if meta is None:
        return ItemMeta()
    if isinstance(meta, dict):
        return ItemMeta(**meta)
    return meta


def per_item_statistics(
    df: pd.DataFrame, item_meta: Mapping[str, Union[ItemMeta, dict]]
) -> list[ItemStatistic]:
    """Groups loan rows by item, in order of first appearance."""
    counts = df.groupby("item_id", sort=False).size()

    # Only completed loans contribute to durations and the hourly histogram.
    completed = df[df["duration"].notna()]
    totals = completed.groupby("item_id", sort=False)["duration"].sum()
    hourly = completed.groupby(["item_id", "start_hour"]).size()

    usage: dict[str, list[int]] = {}
    for (item_id, hour), count in hourly.items():
        usage.setdefault(item_id, [0] * 24)[int(hour)] += int(count)

    stats = []
    for item_id, count in counts.items():
        meta = _meta_for(item_meta, item_id)
        if not meta.name:
            logger.warning(f"Item name not found for item_id: {item_id}")

        loan_count = int(count)
        total = float(totals.get(item_id, 0.0))
        stats.append(
            ItemStatistic(
                item_id=item_id,
                item_name=meta.name or settings.UNKNOWN_ITEM_NAME,
                image=meta.image or settings.DEFAULT_IMAGE,
                loan_count=loan_count,
                total_duration_seconds=total,
                average_duration_seconds=total / loan_count if loan_count else 0.0,
                hourly_usage=usage.get(item_id, [0] * 24),
            )
        )
    return stats


def merge_statistics_by_name(stats: Sequence[ItemStatistic]) -> list[ItemStatistic]:
    """
    Folds statistics of items sharing a display name into one row. The merged
    row keeps the first item's id and image and lists every folded id.
    """
    merged: dict[str, ItemStatistic] = {}
    for stat in stats:
        existing = merged.get(stat.item_name)
        if existing is None:
            merged[stat.item_name] = stat.model_copy(
                update={
                    "hourly_usage": list(stat.hourly_usage),
                    "source_item_ids": [stat.item_id],
                }
            )
            continue

        existing.loan_count += stat.loan_count
        existing.total_duration_seconds += stat.total_duration_seconds
        existing.hourly_usage = [
            a + b for a, b in zip(existing.hourly_usage, stat.hourly_usage)
        ]
        existing.source_item_ids = sorted(
            existing.source_item_ids + [stat.item_id], key=numeric_id_key
        )

    for stat in merged.values():
        stat.average_duration_seconds = (
            stat.total_duration_seconds / stat.loan_count if stat.loan_count else 0.0
        )
    return list(merged.values())


def event_time_series(df: pd.DataFrame) -> list[int]:
    """Loans started in each ten-minute slot of the day, every record counted once."""
    counts = df["slot"].value_counts().reindex(range(settings.SLOTS_PER_DAY), fill_value=0)
    return [int(count) for count in counts]


def aggregate(
    records: Sequence[LoanRecord],
    item_meta: Mapping[str, Union[ItemMeta, dict]],
    merge_by_name: bool = False,
) -> AggregationResult:
    """
    Computes per-item loan statistics and the whole-event ten-minute series
    for the loan records of one event. Pure: the inputs are not modified.
    """
    df = _records_frame(records)

    per_item = per_item_statistics(df, item_meta)
    if merge_by_name:
        per_item = merge_statistics_by_name(per_item)

    return AggregationResult(per_item=per_item, hourly_totals=event_time_series(df))


def active_range(hourly_totals: Sequence[int]) -> tuple[int, int]:
    """
    First and last non-zero slot of a series. A series without any loan
    collapses to the single point (0, 0).
    """
    non_zero = [i for i, count in enumerate(hourly_totals) if count]
    if not non_zero:
        return (0, 0)
    return (non_zero[0], non_zero[-1])


def slot_label(index: int) -> str:
    minutes = index * settings.SLOT_MINUTES
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _first_id(stat: ItemStatistic) -> str:
    if stat.source_item_ids:
        return stat.source_item_ids[0]
    return stat.item_id


def sort_statistics(
    stats: Sequence[ItemStatistic], key: str, descending: bool = False
) -> list[ItemStatistic]:
    """
    Orders statistics by one of SORT_KEYS. Ties keep their current order.
    Item ids compare numerically; merged rows sort by their first source id.
    """
    key_funcs = {
        "loan_count": lambda s: s.loan_count,
        "total_duration": lambda s: s.total_duration_seconds,
        "average_duration": lambda s: s.average_duration_seconds,
        "item_id": lambda s: numeric_id_key(_first_id(s)),
        "name": lambda s: s.item_name,
    }
    if key not in key_funcs:
        raise ValueError(f"Unknown sort key '{key}'. Expected one of {', '.join(SORT_KEYS)}.")

    return sorted(stats, key=key_funcs[key], reverse=descending)


def most_borrowed_items(
    records: Sequence[LoanRecord],
    item_meta: Mapping[str, Union[ItemMeta, dict]],
    limit: int = settings.MOST_BORROWED_LIMIT,
) -> list[dict]:
    """The dashboard ranking: items with the most loans, most first."""
    counts: dict[str, int] = {}
    for record in records:
        counts[record.item_id] = counts.get(record.item_id, 0) + 1

    ranking = []
    for item_id, count in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:limit]:
        meta = _meta_for(item_meta, item_id)
        ranking.append(
            {
                "id": item_id,
                "name": meta.name or settings.UNKNOWN_ITEM_NAME,
                "image": item_image_url(meta.image),
                "count": count,
            }
        )
    return ranking


def statistics_frame(stats: Sequence[ItemStatistic], merged: bool = False) -> pd.DataFrame:
    """Export layout: id, name, count, formatted durations, then one column per hour."""
    rows = []
    for stat in stats:
        row = {
            "Item ID": _first_id(stat) if merged else stat.item_id,
            "Item Name": stat.item_name,
            "Loan Count": stat.loan_count,
            "Total Duration": format_duration(stat.total_duration_seconds),
            "Average Duration": format_duration(stat.average_duration_seconds),
        }
        row.update(dict(zip(HOURS, stat.hourly_usage)))
        rows.append(row)

    columns = ["Item ID", "Item Name", "Loan Count", "Total Duration", "Average Duration"]
    return pd.DataFrame(rows, columns=columns + HOURS)
