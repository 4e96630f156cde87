from __future__ import annotations

from datetime import datetime, timezone

import pytest
from conftest import at, loan

from item_loans import settings
from item_loans.aggregator import (
    HOURS,
    active_range,
    aggregate,
    most_borrowed_items,
    slot_label,
    sort_statistics,
    statistics_frame,
)
from item_loans.schemas import ItemMeta
from item_loans.utils import format_duration

META = {
    "X": ItemMeta(name="Projector", image="https://example.com/x.png"),
    "1": ItemMeta(name="A"),
    "2": ItemMeta(name="A"),
    "9": ItemMeta(name="B"),
    "10": ItemMeta(name="B"),
}


def test_durations_and_average_for_one_item():
    records = [
        loan("X", at(9, 0, 0), at(9, 1, 0)),
        loan("X", at(10, 0, 0), at(10, 2, 0)),
    ]

    result = aggregate(records, META)

    (stat,) = result.per_item
    assert stat.item_id == "X"
    assert stat.item_name == "Projector"
    assert stat.loan_count == 2
    assert stat.total_duration_seconds == 180
    assert stat.average_duration_seconds == 90
    assert stat.source_item_ids is None


def test_histogram_counts_completed_loans_only():
    records = [
        loan("X", at(9, 15), at(9, 45)),
        loan("X", at(9, 30)),  # still on loan
        loan("X", at(14, 0), at(13, 0)),  # ends before it starts
    ]

    (stat,) = aggregate(records, META).per_item

    assert stat.loan_count == 3
    assert stat.total_duration_seconds == 30 * 60
    assert stat.average_duration_seconds == pytest.approx(600)
    assert stat.hourly_usage[9] == 1
    assert stat.hourly_usage[14] == 0
    assert sum(stat.hourly_usage) == 1
    assert sum(stat.hourly_usage) <= stat.loan_count


def test_items_keep_order_of_first_appearance():
    records = [loan("2", at(9)), loan("1", at(10)), loan("2", at(11))]

    result = aggregate(records, META)

    assert [stat.item_id for stat in result.per_item] == ["2", "1"]
    assert [stat.loan_count for stat in result.per_item] == [2, 1]


def test_hours_and_slots_use_local_time():
    start = datetime(2025, 3, 1, 1, 35, tzinfo=timezone.utc)
    end = datetime(2025, 3, 1, 2, 0, tzinfo=timezone.utc)

    result = aggregate([loan("X", start, end)], META)

    # 01:35 UTC is 10:35 in the default Asia/Tokyo zone.
    assert settings.LOCAL_TIMEZONE == "Asia/Tokyo"
    assert result.per_item[0].hourly_usage[10] == 1
    assert result.hourly_totals[63] == 1
    assert sum(result.hourly_totals) == 1


def test_event_series_counts_every_record_once():
    records = [
        loan("X", at(9, 0), at(9, 5)),
        loan("1", at(9, 9)),
        loan("2", at(9, 10), at(9, 0)),
        loan("2", at(23, 59), at(23, 59, 30)),
    ]

    totals = aggregate(records, META).hourly_totals

    assert len(totals) == 144
    assert totals[54] == 2
    assert totals[55] == 1
    assert totals[143] == 1
    assert sum(totals) == len(records)
    assert active_range(totals) == (54, 143)


def test_empty_input_collapses_to_a_single_point():
    result = aggregate([], META)

    assert result.per_item == []
    assert result.hourly_totals == [0] * 144
    assert active_range(result.hourly_totals) == (0, 0)


def test_slot_labels():
    assert slot_label(0) == "00:00"
    assert slot_label(55) == "09:10"
    assert slot_label(143) == "23:50"


def test_merge_by_name_sums_counts_and_collects_ids():
    records = (
        [loan("1", at(9), at(9, 10)) for _ in range(3)]
        + [loan("2", at(10), at(10, 20)) for _ in range(2)]
    )

    result = aggregate(records, META, merge_by_name=True)

    (merged,) = result.per_item
    assert merged.item_name == "A"
    assert merged.loan_count == 5
    assert merged.source_item_ids == ["1", "2"]
    assert merged.total_duration_seconds == 3 * 600 + 2 * 1200
    assert merged.average_duration_seconds == pytest.approx(merged.total_duration_seconds / 5)
    assert merged.hourly_usage[9] == 3
    assert merged.hourly_usage[10] == 2


def test_merged_ids_sort_numerically():
    records = [loan("10", at(9)), loan("9", at(10))]

    (merged,) = aggregate(records, META, merge_by_name=True).per_item

    assert merged.source_item_ids == ["9", "10"]
    assert merged.item_id == "10"


def test_merge_leaves_unmerged_statistics_untouched():
    records = [loan("1", at(9), at(9, 10)), loan("2", at(9), at(9, 10))]

    plain = aggregate(records, META)
    merged = aggregate(records, META, merge_by_name=True)

    assert [s.loan_count for s in plain.per_item] == [1, 1]
    assert merged.per_item[0].loan_count == 2
    assert plain.hourly_totals == merged.hourly_totals


def test_aggregate_is_idempotent():
    records = [
        loan("X", at(9), at(9, 30)),
        loan("1", at(12)),
        loan("2", at(13), at(12)),
    ]
    snapshot = [r.model_dump() for r in records]

    first = aggregate(records, META, merge_by_name=True)
    second = aggregate(records, META, merge_by_name=True)

    assert first.model_dump() == second.model_dump()
    assert [r.model_dump() for r in records] == snapshot


def test_unknown_items_get_placeholder_name_and_image():
    (stat,) = aggregate([loan("404", at(9))], META).per_item

    assert stat.item_name == settings.UNKNOWN_ITEM_NAME
    assert stat.image == settings.DEFAULT_IMAGE
    assert stat.average_duration_seconds == 0


def test_item_meta_may_be_plain_dicts():
    (stat,) = aggregate([loan("7", at(9))], {"7": {"name": "Tripod", "image": None}}).per_item

    assert stat.item_name == "Tripod"


def test_sort_by_count_keeps_ties_in_place():
    records = [loan("2", at(9)), loan("1", at(9)), loan("X", at(9)), loan("X", at(10))]
    stats = aggregate(records, META).per_item

    descending = sort_statistics(stats, "loan_count", descending=True)
    ascending = sort_statistics(stats, "loan_count")

    assert [s.item_id for s in descending] == ["X", "2", "1"]
    assert [s.item_id for s in ascending] == ["2", "1", "X"]


def test_sort_by_item_id_is_numeric():
    stats = aggregate([loan("10", at(9)), loan("9", at(9)), loan("2", at(9))], META).per_item

    assert [s.item_id for s in sort_statistics(stats, "item_id")] == ["2", "9", "10"]
    assert [s.item_id for s in sort_statistics(stats, "item_id", descending=True)] == ["10", "9", "2"]


def test_sort_by_name_and_durations():
    records = [loan("X", at(9), at(10)), loan("1", at(9), at(9, 1)), loan("9", at(9))]
    stats = aggregate(records, META).per_item

    assert [s.item_name for s in sort_statistics(stats, "name")] == ["A", "B", "Projector"]
    assert [s.item_id for s in sort_statistics(stats, "total_duration", descending=True)] == ["X", "1", "9"]
    assert [s.item_id for s in sort_statistics(stats, "average_duration")] == ["9", "1", "X"]


def test_unknown_sort_key_raises():
    with pytest.raises(ValueError):
        sort_statistics([], "popularity")


def test_most_borrowed_items_ranking():
    records = [loan("1", at(9)), loan("X", at(9)), loan("X", at(10)), loan("404", at(11))]

    ranking = most_borrowed_items(records, META, limit=2)

    assert [item["id"] for item in ranking] == ["X", "1"]
    assert ranking[0] == {
        "id": "X",
        "name": "Projector",
        "image": "https://example.com/x.png",
        "count": 2,
    }
    assert ranking[1]["image"] == settings.DEFAULT_IMAGE


def test_statistics_frame_layout():
    records = [loan("1", at(9), at(10, 1, 1)), loan("2", at(9))]
    stats = aggregate(records, META, merge_by_name=True).per_item

    df = statistics_frame(stats, merged=True)

    assert list(df.columns[:5]) == [
        "Item ID",
        "Item Name",
        "Loan Count",
        "Total Duration",
        "Average Duration",
    ]
    assert list(df.columns[5:]) == HOURS
    row = df.iloc[0]
    assert row["Item ID"] == "1"
    assert row["Loan Count"] == 2
    assert row["Total Duration"] == "1h 1m 1s"
    assert row["09:00"] == 1


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "0h 0m 0s"),
        (-5, "0h 0m 0s"),
        (59, "59s"),
        (120, "2m 0s"),
        (3600, "1h 0m 0s"),
        (3661.7, "1h 1m 1s"),
    ],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_mixed_naive_and_aware_timestamps_are_compared_as_local(monkeypatch):
    monkeypatch.setattr(settings, "LOCAL_TIMEZONE", "Asia/Tokyo")
    records = [
        # 18:00 local to 09:30 UTC, which is 18:30 in Tokyo
        loan("X", at(18, 0), datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)),
        loan("X", datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc), at(17, 0)),
    ]

    (stat,) = aggregate(records, META).per_item

    assert stat.loan_count == 2
    assert stat.total_duration_seconds == 30 * 60
    assert stat.hourly_usage[18] == 1
