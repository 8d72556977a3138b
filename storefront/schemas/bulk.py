from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class BulkImportRequest(BaseModel):
    """JSON batch. Items stay raw so one malformed product cannot reject the batch."""
    items: List[Dict[str, Any]] = Field(..., min_length=1)


class CsvImportRequest(BaseModel):
    csv: str = Field(..., min_length=1, description="CSV text with a header row")


class BulkImportResult(BaseModel):
    handle: Optional[str] = None
    status: str  # created, updated, failed
    message: Optional[str] = None


class BulkImportSummary(BaseModel):
    created: int = 0
    updated: int = 0
    failed: int = 0
    results: List[BulkImportResult] = Field(default_factory=list)
