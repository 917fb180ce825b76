from typing import List, Optional

from pydantic import BaseModel


class HistoryEntryOut(BaseModel):
    id: str
    job_id: str
    item_id: str
    item_title: str
    field: str
    target_id: Optional[str] = None
    old_value: str
    new_value: str
    is_reverted: bool
    reverted_at: Optional[str] = None
    created_at: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class HistoryPage(BaseModel):
    entries: List[HistoryEntryOut]
    pagination: Pagination


class RevertOut(BaseModel):
    success: bool
    item_id: str
