import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from procurematch.core.sanitize import sanitize_text
from procurematch.core.status import PROCESS_STATUSES, ProcessStatus, derive_status
from procurematch.errors import MalformedRecord

logger = logging.getLogger("procurematch.sync")

StepStatus = Literal["pending", "analyzing", "verified", "conflict"]
StageName = Literal["order", "confirmation", "delivery"]
UploadStage = Literal["confirmation", "delivery"]

STAGES: tuple[str, ...] = ("order", "confirmation", "delivery")
UPLOAD_STAGES: tuple[str, ...] = ("confirmation", "delivery")

DEFAULT_SUPPLIER_NAME = "Unknown"


def _coerce_timestamp(value: Any) -> Any:
    """Turn Firestore JSON exports ({"seconds": .., "nanoseconds": ..}) into datetimes.

    Anything else is left to pydantic's datetime parsing.
    """
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        if isinstance(seconds, (int, float)) and isinstance(nanos, (int, float)):
            return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
    return value


_DATETIME = TypeAdapter(datetime)


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return _DATETIME.validate_python(_coerce_timestamp(value))
    except ValidationError:
        return None


class Step(BaseModel):
    """State of one workflow stage."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    status: StepStatus = "pending"
    file_name: str | None = None
    uploaded_at: datetime | None = None
    conflict_reason: str | None = None
    data: dict[str, Any] | None = None

    @field_validator("file_name", mode="before")
    @classmethod
    def _sanitize_file_name(cls, value: Any) -> Any:
        if value is None:
            return None
        return sanitize_text(value) or None

    @field_validator("uploaded_at", mode="before")
    @classmethod
    def _parse_uploaded_at(cls, value: Any) -> Any:
        return _coerce_timestamp(value)


class Process(BaseModel):
    """One procurement transaction with its three stages.

    `status` is always the derived aggregate; `stored_status` keeps whatever
    the backing store last recorded, which may lag behind.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    supplier_name: str = DEFAULT_SUPPLIER_NAME
    status: ProcessStatus = "open"
    stored_status: ProcessStatus = "open"
    created_at: datetime | None = None
    order: Step = Step()
    confirmation: Step = Step()
    delivery: Step = Step()

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created_at(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    def stage(self, name: str) -> Step:
        if name not in STAGES:
            raise ValueError(f"Unknown stage: {name}")
        return getattr(self, name)

    def with_stage(self, name: str, step: Step) -> "Process":
        """Copy with one stage replaced and the aggregate status recomputed."""
        if name not in STAGES:
            raise ValueError(f"Unknown stage: {name}")
        updated = self.model_copy(update={name: step})
        return updated.model_copy(update={"status": derive_status(updated)})

    @property
    def is_status_stale(self) -> bool:
        return self.status != self.stored_status


def parse_upload_stage(value: Any) -> str | None:
    """Return the stage name if it is user-uploadable, else None."""
    stage = sanitize_text(value)
    return stage if stage in UPLOAD_STAGES else None


def _validate_leniently(model: type[BaseModel], payload: dict[str, Any]) -> BaseModel:
    """Validate, dropping fields that fail until the rest validates."""
    payload = dict(payload)
    while True:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            bad = {err["loc"][0] for err in e.errors() if err["loc"]}
            bad &= payload.keys()
            if not bad:
                return model()
            for key in bad:
                logger.debug(f"Dropping invalid field '{key}' from {model.__name__}")
                payload.pop(key)


def _coerce_step(raw: Any, stage: str, record_id: str) -> Step:
    if raw is None:
        return Step()
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"Stage '{stage}' of {record_id} is not a mapping")
    merged = {"status": "pending", "conflictReason": None, "data": None}
    merged.update(raw)
    step = _validate_leniently(Step, merged)
    if step.status != "conflict" and step.conflict_reason is not None:
        step = step.model_copy(update={"conflict_reason": None})
    return step


def _build_process(raw: Any, fallback_id: str) -> Process:
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"Record {fallback_id} is not a mapping")

    record_id = sanitize_text(raw.get("id")) or sanitize_text(fallback_id)
    supplier = sanitize_text(raw.get("supplierName")) or DEFAULT_SUPPLIER_NAME
    stored_status = raw.get("status")
    if stored_status not in PROCESS_STATUSES:
        stored_status = "open"

    stages = {}
    for stage in STAGES:
        try:
            stages[stage] = _coerce_step(raw.get(stage), stage, record_id)
        except MalformedRecord as e:
            logger.warning(f"{e}; defaulting stage to pending")
            stages[stage] = Step()

    created_at = _parse_timestamp(raw.get("createdAt"))

    process = Process(
        id=record_id,
        supplier_name=supplier,
        stored_status=stored_status,
        created_at=created_at,
        **stages,
    )
    return process.model_copy(update={"status": derive_status(process)})


def map_process(raw: Any, fallback_id: str) -> Process:
    """Map a raw stored document to a validated Process.

    Never raises: malformed input degrades to defaults so that a single bad
    record cannot abort a synchronization pass.
    """
    try:
        process = _build_process(raw, fallback_id)
    except MalformedRecord as e:
        logger.warning(f"Malformed record: {e}")
        process = Process(id=sanitize_text(fallback_id))
    except Exception:
        logger.exception(f"Unexpected error mapping record {fallback_id}")
        process = Process(id=sanitize_text(fallback_id))

    if process.is_status_stale:
        logger.debug(
            f"Stored status of {process.id} is '{process.stored_status}', derived '{process.status}'"
        )
    return process
