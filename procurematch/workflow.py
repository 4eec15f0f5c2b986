"""Stage ordering rules for the Order -> Confirmation -> Delivery workflow.

Order is populated by external ingestion and is never started here.
Confirmation may start from pending or conflict. Delivery additionally
requires a verified confirmation.
"""
from typing import Literal

from procurematch.core.process import STAGES, Process
from procurematch.errors import TransitionRejected

StageAvailability = Literal["available", "blocked", "analyzing", "verified", "external"]

STARTABLE_STATUSES = ("pending", "conflict")


class WorkflowGate:
    """Decides whether a stage transition may be initiated."""

    def can_start(self, process: Process, stage: str) -> bool:
        return self._rejection_reason(process, stage) is None

    def check(self, process: Process, stage: str) -> None:
        """Raise TransitionRejected if the stage may not start."""
        reason = self._rejection_reason(process, stage)
        if reason is not None:
            raise TransitionRejected(process.id, stage, reason)

    def availability(self, process: Process, stage: str) -> StageAvailability:
        """How a stage should be presented: uploadable, blocked, or settled."""
        if stage not in STAGES:
            raise ValueError(f"Unknown stage: {stage}")
        step = process.stage(stage)
        if step.status == "verified":
            return "verified"
        if step.status == "analyzing":
            return "analyzing"
        if stage == "order":
            return "external"
        if self.can_start(process, stage):
            return "available"
        return "blocked"

    def _rejection_reason(self, process: Process, stage: str) -> str | None:
        if stage == "order":
            return "order stage is populated by external ingestion"
        if stage not in STAGES:
            return f"unknown stage '{stage}'"

        status = process.stage(stage).status
        if status not in STARTABLE_STATUSES:
            return f"stage is {status}"
        if stage == "delivery" and process.confirmation.status != "verified":
            return "confirmation is not verified"
        return None
