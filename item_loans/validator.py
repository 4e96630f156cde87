"""
Validation and batch registration of items uploaded as CSV.

Rows are checked against static rules, against earlier rows of the same file,
and against items the owner has already registered. Only rows without any
error are submitted, as a single all-or-nothing insert.
"""

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from . import settings
from .record_store import (
    CheckFailed,
    DuplicateCheck,
    Found,
    RecordStore,
    RecordStoreError,
    check_duplicate,
)
from .schemas import CandidateItem, ValidatedItem

logger = logging.getLogger(__name__)

# ASCII digits only; full-width digits never match a scanned barcode.
ID_PATTERN = re.compile(r"[0-9]{8}|[0-9]{13}")

ERR_ID_REQUIRED = "ID required"
ERR_ID_FORMAT = "must be 8 or 13 digits"
ERR_DUPLICATE_IN_FILE = "duplicate within file"
ERR_NAME_REQUIRED = "name required"
ERR_NAME_TOO_LONG = "name too long"
ERR_GENRE_REQUIRED = "genre required"
ERR_MANAGER_REQUIRED = "manager required"
ERR_ALREADY_REGISTERED = "already registered by you"
ERR_CHECK_FAILED = "duplicate-check failed"

MSG_NO_VALID_ROWS = "no valid rows to register"
MSG_UNIQUE_VIOLATION = (
    "Some items are already registered. Validate the file again and retry."
)
MSG_PERMISSION_DENIED = "Insufficient rights to register items. Sign in again and retry."
MSG_GENERIC_FAILURE = "Registration failed. Please try again."


def is_valid_external_id(external_id: str) -> bool:
    return ID_PATTERN.fullmatch(external_id) is not None


def _static_errors(row: CandidateItem, seen_ids: set[str]) -> list[str]:
    errors = []

    if not row.external_id:
        errors.append(ERR_ID_REQUIRED)
    elif not is_valid_external_id(row.external_id):
        errors.append(ERR_ID_FORMAT)
    elif row.external_id in seen_ids:
        errors.append(ERR_DUPLICATE_IN_FILE)
    else:
        seen_ids.add(row.external_id)

    if not row.display_name:
        errors.append(ERR_NAME_REQUIRED)
    elif len(row.display_name) > settings.MAX_NAME_LENGTH:
        errors.append(ERR_NAME_TOO_LONG)

    if not row.genre:
        errors.append(ERR_GENRE_REQUIRED)
    if not row.manager:
        errors.append(ERR_MANAGER_REQUIRED)

    return errors


def _needs_remote_check(row: CandidateItem, errors: list[str]) -> bool:
    return bool(row.external_id) and not any(
        e in (ERR_ID_FORMAT, ERR_DUPLICATE_IN_FILE) for e in errors
    )


def validate(
    rows: Sequence[CandidateItem],
    owner_id: str,
    store: RecordStore,
    cancel_token: Optional[threading.Event] = None,
    max_workers: Optional[int] = None,
) -> list[ValidatedItem]:
    """
    Validates a batch of candidate rows for `owner_id`. Output order matches input order.

    The in-file duplicate pass runs over the whole batch before any remote check
    is started; remote checks then run concurrently. A failed remote check is
    reported as a row error, never as a pass.
    """
    if not rows:
        return []

    seen_ids: set[str] = set()
    row_errors = [_static_errors(row, seen_ids) for row in rows]
    eligible = [
        i for i, row in enumerate(rows) if _needs_remote_check(row, row_errors[i])
    ]

    if eligible:
        workers = max(1, min(max_workers or settings.DUPLICATE_CHECK_WORKERS, len(eligible)))
        logger.info(f"Checking {len(eligible)} ids against registered items...")

        def run_check(external_id: str) -> DuplicateCheck:
            if cancel_token is not None and cancel_token.is_set():
                return CheckFailed("cancelled")
            return check_duplicate(store, external_id, owner_id)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                i: executor.submit(run_check, rows[i].external_id) for i in eligible
            }
            for i, future in futures.items():
                outcome = future.result()
                if isinstance(outcome, Found):
                    row_errors[i].append(ERR_ALREADY_REGISTERED)
                elif isinstance(outcome, CheckFailed):
                    row_errors[i].append(ERR_CHECK_FAILED)

    validated = [
        ValidatedItem(**row.model_dump(include=set(CandidateItem.model_fields)), errors=errors)
        for row, errors in zip(rows, row_errors)
    ]
    valid_count = sum(1 for item in validated if item.is_valid)
    logger.info(f"{valid_count} of {len(validated)} rows are valid.")
    return validated


@dataclass
class SubmitResult:
    success: bool
    inserted: int
    message: str


def describe_insert_error(error: RecordStoreError) -> str:
    """Turns a rejected batch insert into the message shown to the user."""
    text = (error.message or "").lower()
    if error.code == "23505" or "duplicate key" in text or "unique" in text:
        return MSG_UNIQUE_VIOLATION
    if (
        error.code == "42501"
        or error.status in (401, 403)
        or "permission denied" in text
    ):
        return MSG_PERMISSION_DENIED
    return MSG_GENERIC_FAILURE


def build_insert_rows(items: Sequence[ValidatedItem], owner_id: str) -> list[dict]:
    registered_date = datetime.now(timezone.utc).isoformat()
    return [
        {
            "item_id": item.external_id,
            "name": item.display_name,
            "image": item.image_ref or None,
            "genre": item.genre,
            "manager": item.manager,
            settings.OWNER_FIELD: owner_id,
            "registered_date": registered_date,
        }
        for item in items
        if item.is_valid
    ]


def submit(
    validated: Sequence[ValidatedItem], owner_id: str, store: RecordStore
) -> SubmitResult:
    """Registers every valid row in one insert; the batch succeeds or fails as a whole."""
    rows = build_insert_rows(validated, owner_id)
    if not rows:
        logger.warning("No valid rows to register.")
        return SubmitResult(success=False, inserted=0, message=MSG_NO_VALID_ROWS)

    try:
        store.insert_many(settings.ITEMS_TABLE, rows)
    except RecordStoreError as e:
        logger.error(f"❌ Batch insert of {len(rows)} items failed: {e}")
        return SubmitResult(success=False, inserted=0, message=describe_insert_error(e))

    logger.info(f"✅ Registered {len(rows)} items.")
    return SubmitResult(
        success=True, inserted=len(rows), message=f"Registered {len(rows)} items."
    )


class ImportSession:
    """
    One import screen's worth of work. Cancelling the session stops checks that
    have not started yet and discards the validation result.
    """

    def __init__(self, store: RecordStore, owner_id: str):
        self.store = store
        self.owner_id = owner_id
        self.cancel_token = threading.Event()
        self.validated: list[ValidatedItem] | None = None

    def cancel(self):
        self.cancel_token.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.is_set()

    def validate(self, rows: Sequence[CandidateItem]) -> list[ValidatedItem] | None:
        result = validate(rows, self.owner_id, self.store, cancel_token=self.cancel_token)
        if self.cancelled:
            logger.info("Import session cancelled; discarding validation result.")
            return None
        self.validated = result
        return result

    def submit(self) -> SubmitResult:
        if self.validated is None:
            return SubmitResult(success=False, inserted=0, message=MSG_NO_VALID_ROWS)
        result = submit(self.validated, self.owner_id, self.store)
        if result.success:
            # A registered batch is spent; validate again before another submit.
            self.validated = None
        return result
