from abc import ABC, abstractmethod

from procurematch.core.upload import StageOutcome, StageSubmission


class OutcomeClassifier(ABC):
    @abstractmethod
    async def classify(self, submission: StageSubmission) -> StageOutcome | None:
        """Decide or request the verification outcome for a submitted stage.

        Returns a StageOutcome when the result is known immediately, or None
        when the result will be written to the store later by the external
        verification system. Raises DispatchFailure if submission fails.
        """
        ...
