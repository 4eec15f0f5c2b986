from typing import Any, Literal

from pydantic import BaseModel

from procurematch.core.status import ProcessStatus

UploadResult = Literal["rejected", "busy", "dispatched", "verified", "conflict"]


class UploadedFile(BaseModel):
    """A document handed in for one stage."""
    name: str
    content: bytes
    content_type: str = "application/octet-stream"


class StageSubmission(BaseModel):
    """What a classifier receives: the file plus the metadata sent along with it."""
    process_id: str
    stage: str
    file: UploadedFile


class StageOutcome(BaseModel):
    """Synchronously decided verification result for a stage."""
    status: Literal["verified", "conflict"]
    conflict_reason: str | None = None
    data: dict[str, Any] | None = None


class UploadOutcome(BaseModel):
    """Result of UploadOrchestrator.submit, as reported to the caller."""
    process_id: str
    stage: str
    result: UploadResult
    file_name: str | None = None
    conflict_reason: str | None = None
    process_status: ProcessStatus | None = None
    detail: str = ""
