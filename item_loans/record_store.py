"""
Access to the hosted record store (a PostgREST-style REST API).

Everything above this module talks to the store through the small `RecordStore`
interface, so tests and other backends can swap the HTTP implementation out.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

import requests

from . import settings
from .schemas import ItemMeta, LoanRecord

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class RecordStoreError(RuntimeError):
    """Raised when the record store rejects a request or cannot be reached."""

    def __init__(
        self, message: str, code: Optional[str] = None, status: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class RecordStore(ABC):
    @abstractmethod
    def query(
        self, table: str, filters: dict[str, Any], limit: Optional[int] = None
    ) -> list[Row]:
        """Returns rows of `table` whose columns equal the filter values (lists mean 'one of')."""

    @abstractmethod
    def insert_many(self, table: str, rows: list[Row]) -> None:
        """Inserts all rows or none of them."""

    @abstractmethod
    def current_principal_id(self) -> Optional[str]:
        """The id of the signed-in user, or None when nobody is signed in."""


def _format_filter(value: Any) -> str:
    if isinstance(value, (list, tuple, set)):
        return "in.(" + ",".join(_format_value(v) for v in value) + ")"
    return "eq." + _format_value(value)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class RestRecordStore(RecordStore):
    """RecordStore backed by the hosted REST endpoints (`/rest/v1` and `/auth/v1`)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.SUPABASE_ANON_KEY
        self.access_token = (
            access_token if access_token is not None else settings.SUPABASE_ACCESS_TOKEN
        )
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT

        if not self.base_url or not self.api_key:
            raise RecordStoreError(
                "SUPABASE_URL and SUPABASE_ANON_KEY must be set to reach the record store."
            )

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }

    def _raise_for_response(self, response: requests.Response) -> None:
        if response.ok:
            return
        code = None
        message = response.text or response.reason
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or body.get("msg") or message
        raise RecordStoreError(
            message, code=str(code) if code is not None else None, status=response.status_code
        )

    def query(
        self, table: str, filters: dict[str, Any], limit: Optional[int] = None
    ) -> list[Row]:
        params = {"select": "*"}
        params.update({column: _format_filter(value) for column, value in filters.items()})
        if limit is not None:
            params["limit"] = str(limit)

        try:
            response = requests.get(
                f"{self.base_url}/rest/v1/{table}",
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RecordStoreError(f"Query on '{table}' failed: {e}") from e

        self._raise_for_response(response)
        return response.json()

    def insert_many(self, table: str, rows: list[Row]) -> None:
        headers = self._headers()
        headers["Prefer"] = "return=minimal"
        try:
            response = requests.post(
                f"{self.base_url}/rest/v1/{table}",
                json=rows,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RecordStoreError(f"Insert into '{table}' failed: {e}") from e

        self._raise_for_response(response)

    def current_principal_id(self) -> Optional[str]:
        if not self.access_token:
            return None
        try:
            response = requests.get(
                f"{self.base_url}/auth/v1/user",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RecordStoreError(f"Could not fetch the current user: {e}") from e

        if response.status_code in (401, 403):
            return None
        self._raise_for_response(response)
        return response.json().get("id")


# --- Duplicate check result ---


@dataclass(frozen=True)
class Found:
    row: Row = field(default_factory=dict)


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class CheckFailed:
    reason: str


DuplicateCheck = Union[Found, NotFound, CheckFailed]


def check_duplicate(store: RecordStore, external_id: str, owner_id: str) -> DuplicateCheck:
    """Looks for a non-deleted item with this external id registered by `owner_id`."""
    try:
        rows = store.query(
            settings.ITEMS_TABLE,
            {
                "item_id": external_id,
                settings.OWNER_FIELD: owner_id,
                settings.DELETED_FLAG_FIELD: False,
            },
            limit=1,
        )
    except RecordStoreError as e:
        logger.warning(f"Duplicate check for {external_id} failed: {e}")
        return CheckFailed(str(e))

    if rows:
        return Found(rows[0])
    return NotFound()


# --- Reads used by the statistics pipeline ---


def fetch_loan_records(store: RecordStore, event_id: str) -> list[LoanRecord]:
    rows = store.query(settings.LOANS_TABLE, {"event_id": event_id})
    return [LoanRecord(**row) for row in rows]


def fetch_event_name(store: RecordStore, event_id: str) -> Optional[str]:
    rows = store.query(settings.EVENTS_TABLE, {"event_id": event_id}, limit=1)
    if not rows:
        return None
    return rows[0].get("name")


def fetch_item_meta(
    store: RecordStore, item_ids: Iterable[str], owner_id: Optional[str] = None
) -> dict[str, ItemMeta]:
    """
    Name and image for each item id; ids unknown to the store are simply absent.

    External ids are only unique per owner among live items, so when several
    rows share an id the live row wins over a soft-deleted one, and a row
    registered by `owner_id` wins over another owner's.
    """
    wanted = sorted(set(item_ids))
    if not wanted:
        return {}

    rows = store.query(settings.ITEMS_TABLE, {"item_id": wanted})
    rows = sorted(
        rows,
        key=lambda row: (
            bool(row.get(settings.DELETED_FLAG_FIELD)),
            owner_id is not None and row.get(settings.OWNER_FIELD) != owner_id,
        ),
    )

    meta: dict[str, ItemMeta] = {}
    for row in rows:
        item_id = str(row.get("item_id"))
        if item_id not in meta:
            meta[item_id] = ItemMeta(name=row.get("name"), image=row.get("image"))
    return meta
