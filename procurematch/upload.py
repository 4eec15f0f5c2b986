"""Stage upload orchestration.

submit() moves a stage to "analyzing" with a partial write, then either
dispatches the document to the external verification endpoint (result
arrives later through the store) or, in fallback mode, writes the classifier's
verdict together with the recomputed aggregate status.
"""
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Literal

import opik

from procurematch.core.process import Process, Step, parse_upload_stage
from procurematch.core.sanitize import sanitize_text
from procurematch.core.upload import StageOutcome, StageSubmission, UploadedFile, UploadOutcome
from procurematch.errors import ConfigurationMissing, DispatchFailure, TransitionRejected
from procurematch.services.store.base import DocumentStore
from procurematch.services.verification.router import ClassifierRouter
from procurematch.sync import ProcessSynchronizer
from procurematch.workflow import WorkflowGate

logger = logging.getLogger("procurematch.upload")

LockScope = Literal["stage", "session"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InFlightUploads:
    """Tracks which stages have a submission in flight.

    scope="stage" allows one submission per (process, stage);
    scope="session" allows a single submission at a time overall.
    """

    def __init__(self, scope: LockScope = "stage"):
        if scope not in ("stage", "session"):
            raise ValueError(f"Unknown upload lock scope: {scope}")
        self._scope = scope
        self._active: set[tuple[str, str]] = set()

    @property
    def scope(self) -> LockScope:
        return self._scope

    @property
    def active(self) -> frozenset[tuple[str, str]]:
        return frozenset(self._active)

    def acquire(self, process_id: str, stage: str) -> bool:
        key = (process_id, stage)
        if key in self._active or (self._scope == "session" and self._active):
            return False
        self._active.add(key)
        return True

    def release(self, process_id: str, stage: str) -> None:
        self._active.discard((process_id, stage))

    def is_uploading(self, process_id: str, stage: str) -> bool:
        return (process_id, stage) in self._active


class UploadOrchestrator:
    def __init__(
        self,
        store: DocumentStore | None,
        synchronizer: ProcessSynchronizer,
        classifiers: ClassifierRouter,
        gate: WorkflowGate | None = None,
        in_flight: InFlightUploads | None = None,
        rollback_on_dispatch_failure: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._synchronizer = synchronizer
        self._classifiers = classifiers
        self._gate = gate or WorkflowGate()
        self._in_flight = in_flight or InFlightUploads()
        self._rollback = rollback_on_dispatch_failure
        self._clock = clock

    @property
    def in_flight(self) -> InFlightUploads:
        return self._in_flight

    @opik.track(name="stage_upload", capture_input=False)
    async def submit(self, process_id: str, stage: str, file: UploadedFile) -> UploadOutcome:
        """Start verification of one stage.

        Gate denials, unknown processes and busy slots come back as a
        "rejected"/"busy" outcome without touching the store. DispatchFailure
        and StoreWriteError propagate to the caller.
        """
        if self._store is None:
            raise ConfigurationMissing("No backing store configured")

        process_id = sanitize_text(process_id)
        upload_stage = parse_upload_stage(stage)
        if upload_stage is None:
            return self._rejected(process_id, sanitize_text(stage), "stage is not uploadable")

        process = self._synchronizer.get(process_id)
        if process is None:
            return self._rejected(process_id, upload_stage, "unknown process")

        try:
            self._gate.check(process, upload_stage)
        except TransitionRejected as e:
            return self._rejected(process_id, upload_stage, e.reason)

        if not self._in_flight.acquire(process_id, upload_stage):
            logger.info(f"Upload for {process_id}/{upload_stage} refused: another upload is in flight")
            return UploadOutcome(
                process_id=process_id,
                stage=upload_stage,
                result="busy",
                detail="another upload is in flight",
            )

        try:
            return await self._run(process, upload_stage, file)
        finally:
            self._in_flight.release(process_id, upload_stage)

    async def _run(self, process: Process, stage: str, file: UploadedFile) -> UploadOutcome:
        file_name = sanitize_text(file.name) or "upload"
        previous = process.stage(stage)

        await self._write(process.id, {
            f"{stage}.status": "analyzing",
            f"{stage}.fileName": file_name,
            f"{stage}.uploadedAt": self._clock(),
            f"{stage}.conflictReason": None,
        })
        logger.info(f"Stage {process.id}/{stage} is analyzing {file_name}")

        submission = StageSubmission(
            process_id=process.id,
            stage=stage,
            file=file.model_copy(update={"name": file_name}),
        )
        classifier = self._classifiers.for_stage(stage)

        try:
            outcome = await classifier.classify(submission)
        except DispatchFailure:
            if self._rollback:
                await self._restore(process.id, stage, previous)
            raise

        if outcome is None:
            return UploadOutcome(
                process_id=process.id,
                stage=stage,
                result="dispatched",
                file_name=file_name,
                detail="awaiting verification result",
            )
        return await self._apply_outcome(process, stage, outcome, file_name)

    async def _apply_outcome(
        self, process: Process, stage: str, outcome: StageOutcome, file_name: str
    ) -> UploadOutcome:
        conflict_reason = outcome.conflict_reason if outcome.status == "conflict" else None

        # The store may already reflect our analyzing write; prefer the latest view.
        latest = self._synchronizer.get(process.id) or process
        current = latest.stage(stage)
        resolved = current.model_copy(update={
            "status": outcome.status,
            "conflict_reason": conflict_reason,
            "file_name": file_name,
        })
        updated = latest.with_stage(stage, resolved)

        fields: dict[str, Any] = {
            f"{stage}.status": outcome.status,
            f"{stage}.conflictReason": conflict_reason,
            "status": updated.status,
        }
        if outcome.data is not None:
            fields[f"{stage}.data"] = outcome.data
        await self._write(process.id, fields)

        logger.info(f"Stage {process.id}/{stage} resolved as {outcome.status}; process is {updated.status}")
        return UploadOutcome(
            process_id=process.id,
            stage=stage,
            result=outcome.status,
            file_name=file_name,
            conflict_reason=conflict_reason,
            process_status=updated.status,
        )

    async def _restore(self, process_id: str, stage: str, previous: Step) -> None:
        logger.warning(f"Rolling {process_id}/{stage} back to {previous.status} after dispatch failure")
        await self._write(process_id, {
            f"{stage}.status": previous.status,
            f"{stage}.fileName": previous.file_name,
            f"{stage}.uploadedAt": previous.uploaded_at,
            f"{stage}.conflictReason": previous.conflict_reason,
        })

    async def _write(self, process_id: str, fields: dict[str, Any]) -> None:
        await self._store.update_fields(self._synchronizer.collection_path, process_id, fields)

    def _rejected(self, process_id: str, stage: str, reason: str) -> UploadOutcome:
        logger.info(f"Upload for {process_id}/{stage} rejected: {reason}")
        return UploadOutcome(process_id=process_id, stage=stage, result="rejected", detail=reason)
