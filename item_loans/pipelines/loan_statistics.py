import logging

from item_loans import aggregator, data_handler, settings
from item_loans.pipeline import DataPipeline
from item_loans.record_store import (
    RecordStore,
    fetch_event_name,
    fetch_item_meta,
    fetch_loan_records,
)
from item_loans.schemas import AggregationResult, ItemStatistic, LoanRecord

logger = logging.getLogger(__name__)


class LoanStatisticsPipeline(DataPipeline):
    def __init__(
        self,
        event_id: str,
        store: RecordStore,
        merge_by_name: bool = False,
        sort_key: str = "loan_count",
        descending: bool = True,
    ):
        super().__init__("loan statistics", store)
        self.event_id = event_id
        self.merge_by_name = merge_by_name
        self.sort_key = sort_key
        self.descending = descending
        self.item_meta = {}
        self.result: AggregationResult | None = None

    def extract(self) -> list[LoanRecord] | None:
        logger.info(f"--- Fetching loan records for event {self.event_id} ---")

        records = fetch_loan_records(self.store, self.event_id)
        if not records:
            logger.warning(f"No loan records for event {self.event_id}.")
            return None

        self.item_meta = fetch_item_meta(
            self.store, (r.item_id for r in records), self.store.current_principal_id()
        )
        logger.info(f"  > {len(records)} records across {len(self.item_meta)} known items.")

        for rank, item in enumerate(
            aggregator.most_borrowed_items(records, self.item_meta), start=1
        ):
            logger.info(f"  > #{rank} {item['name']} ({item['id']}): {item['count']} loans")
        return records

    def transform(self, records: list[LoanRecord]) -> list[ItemStatistic] | None:
        logger.info("--- Aggregating ---")
        self.result = aggregator.aggregate(records, self.item_meta, self.merge_by_name)

        first, last = aggregator.active_range(self.result.hourly_totals)
        logger.info(
            f"Active period: {aggregator.slot_label(first)} - {aggregator.slot_label(last)} "
            f"(peak {max(self.result.hourly_totals)} loans per {settings.SLOT_MINUTES} min)"
        )

        return aggregator.sort_statistics(
            self.result.per_item, self.sort_key, descending=self.descending
        )

    def load(self, stats: list[ItemStatistic]) -> bool:
        df = aggregator.statistics_frame(stats, merged=self.merge_by_name)
        logger.info("\n--- Loan Statistics ---")
        logger.info(df.iloc[:, :5].to_string(index=False))

        event_name = fetch_event_name(self.store, self.event_id)
        data_handler.save_statistics(
            df, stats, event_id=self.event_id, event_name=event_name, merged=self.merge_by_name
        )
        return True
