import logging
from abc import ABC, abstractmethod
from typing import Any

from .record_store import RecordStore

logger = logging.getLogger(__name__)


class DataPipeline(ABC):
    """
    Abstract base class for the import and statistics pipelines.
    Follows an Extract -> Transform -> Load (ETL) pattern.
    """

    def __init__(self, report_type: str, store: RecordStore, dry_run: bool = False):
        self.report_type = report_type
        self.store = store
        self.dry_run = dry_run

    def run(self) -> bool:
        """
        Orchestrates the pipeline execution. Returns False when a step produced nothing usable.
        Record store failures propagate to the caller.
        """
        logger.info(f"🚀 STEP: {self.report_type.upper()}")
        logger.info("-" * 30)

        # --- 1. EXTRACT ---
        raw_data = self.extract()
        if raw_data is None:
            logger.warning(f"⚠️ No data extracted for {self.report_type}.")
            return False

        # --- 2. TRANSFORM ---
        transformed = self.transform(raw_data)
        if transformed is None:
            logger.error(f"❌ Transformation failed for {self.report_type}.")
            return False

        # --- 3. LOAD ---
        ok = self.load(transformed)

        logger.info(f"✅ {self.report_type.capitalize()} pipeline finished.")
        logger.info("=" * 60)
        return ok

    @abstractmethod
    def extract(self) -> Any | None:
        """Reads the input (a file or the record store)."""

    @abstractmethod
    def transform(self, raw_data: Any) -> list[Any] | None:
        """Validates or aggregates the extracted data into a list of models."""

    @abstractmethod
    def load(self, data: list[Any]) -> bool:
        """Writes reports to disk and, where relevant, to the record store."""
