"""
Shared schema building blocks.
"""

from datetime import datetime
from typing import Annotated, List, Optional
from pydantic import AfterValidator, BaseModel
from fleet_backend.app.core.clock import as_utc

# Naive input is read as UTC
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class BatchItemResult(BaseModel):
    """Outcome of one item in a batch operation."""
    index: int
    success: bool
    id: Optional[int] = None
    email: Optional[str] = None
    vehicle_registration: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


class BatchResponse(BaseModel):
    """Per-item results; a failed item never fails the batch."""
    results: List[BatchItemResult]
    succeeded: int
    failed: int

    @classmethod
    def from_results(cls, results):
        succeeded = sum(1 for result in results if result["success"])
        return cls(results=results, succeeded=succeeded, failed=len(results) - succeeded)
