import logging
from pathlib import Path

from item_loans import data_handler, parsers
from item_loans.pipeline import DataPipeline
from item_loans.record_store import RecordStore
from item_loans.schemas import CandidateItem, ValidatedItem
from item_loans.validator import ImportSession, SubmitResult

logger = logging.getLogger(__name__)


class ItemImportPipeline(DataPipeline):
    def __init__(self, csv_path: Path, store: RecordStore, dry_run: bool = False):
        super().__init__("item import", store, dry_run=dry_run)
        self.csv_path = csv_path
        self.session: ImportSession | None = None
        self.submit_result: SubmitResult | None = None

    def extract(self) -> list[CandidateItem] | None:
        logger.info(f"--- Reading {self.csv_path} ---")

        owner_id = self.store.current_principal_id()
        if not owner_id:
            logger.error("❌ Sign in to register items in bulk (no current user).")
            return None
        self.session = ImportSession(self.store, owner_id)

        items = parsers.load_item_csv(self.csv_path)
        if not items:
            logger.warning("The file contains no item rows.")
            return None
        return items

    def transform(self, items: list[CandidateItem]) -> list[ValidatedItem] | None:
        logger.info("--- Validating rows ---")
        validated = self.session.validate(items)
        if validated is None:
            return None

        for index, item in enumerate(validated, start=1):
            if not item.is_valid:
                logger.warning(
                    f"  > Row {index} ({item.external_id or '-'}): {', '.join(item.errors)}"
                )
        return validated

    def load(self, validated: list[ValidatedItem]) -> bool:
        data_handler.save_validation_report(validated)

        valid_count = sum(1 for item in validated if item.is_valid)
        logger.info(f"{valid_count} of {len(validated)} rows are valid.")

        if self.dry_run:
            logger.info("🧪 Dry run: skipping registration.")
            return True

        self.submit_result = self.session.submit()
        if self.submit_result.success:
            logger.info(f"✅ {self.submit_result.message}")
        else:
            logger.error(f"❌ {self.submit_result.message}")
        return self.submit_result.success
