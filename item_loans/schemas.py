from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, computed_field


class CandidateItem(BaseModel):
    """
    One row of an uploaded item CSV, before validation.
    Aliases match the CSV header and the column names of the items table.
    """

    external_id: str = Field(default="", alias="item_id")
    display_name: str = Field(default="", alias="name")
    genre: str = Field(default="")
    manager: str = Field(default="")
    image_ref: Optional[str] = Field(default=None, alias="image")

    class Config:
        populate_by_name = True


class ValidatedItem(CandidateItem):
    """A candidate row plus the ordered list of problems found with it."""

    errors: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors


class StoredItem(BaseModel):
    """Row shape of the items table as returned by the record store."""

    external_id: str = Field(..., alias="item_id")
    display_name: str = Field(..., alias="name")
    genre: Optional[str] = None
    manager: Optional[str] = None
    image_ref: Optional[str] = Field(default=None, alias="image")
    owner: Optional[str] = Field(default=None, alias="registered_by")
    registered_date: Optional[datetime] = None
    deleted: bool = Field(default=False, alias="item_deleted")

    class Config:
        populate_by_name = True


class LoanRecord(BaseModel):
    """
    One check-out of an item during an event (a row of the result table).
    A missing end_time means the item is still on loan.
    """

    id: Optional[int] = Field(default=None, alias="result_id")
    event_id: Optional[str] = None
    item_id: str
    start_time: datetime = Field(..., alias="start_datetime")
    end_time: Optional[datetime] = Field(default=None, alias="end_datetime")

    class Config:
        populate_by_name = True


class ItemMeta(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None


class ItemStatistic(BaseModel):
    item_id: str
    item_name: str
    image: str
    loan_count: int = Field(default=0, ge=0)
    total_duration_seconds: float = 0.0
    average_duration_seconds: float = 0.0
    hourly_usage: list[int] = Field(default_factory=lambda: [0] * 24)
    # Only set when statistics were merged by name.
    source_item_ids: Optional[list[str]] = None


class AggregationResult(BaseModel):
    per_item: list[ItemStatistic]
    hourly_totals: list[int]
