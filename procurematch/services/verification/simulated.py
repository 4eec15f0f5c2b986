import random

from procurematch.core.upload import StageOutcome, StageSubmission
from procurematch.services.verification.base import OutcomeClassifier

SIMULATED_CONFLICT_REASON = "Quantity mismatch (simulated)"


class RandomClassifier(OutcomeClassifier):
    """Fallback outcome when no verification endpoint is configured (demo mode).

    Verified with probability `verified_probability`, otherwise conflict with
    a fixed placeholder reason. Pass a seeded `rng` for reproducible runs.
    """

    def __init__(
        self,
        verified_probability: float = 0.3,
        conflict_reason: str = SIMULATED_CONFLICT_REASON,
        rng: random.Random | None = None,
    ):
        if not 0.0 <= verified_probability <= 1.0:
            raise ValueError(f"verified_probability must be within [0, 1], got {verified_probability}")
        self._verified_probability = verified_probability
        self._conflict_reason = conflict_reason
        self._rng = rng or random.Random()

    async def classify(self, submission: StageSubmission) -> StageOutcome:
        if self._rng.random() < self._verified_probability:
            return StageOutcome(status="verified")
        return StageOutcome(status="conflict", conflict_reason=self._conflict_reason)
