import logging

import httpx
import opik

from procurematch.core.upload import StageSubmission
from procurematch.errors import DispatchFailure
from procurematch.services.verification.base import OutcomeClassifier

logger = logging.getLogger("procurematch.verification")


class ExternalServiceClassifier(OutcomeClassifier):
    """Dispatches the document to an external verification webhook.

    Multipart POST with fields `file`, `orderId` and `stage`. Any 2xx counts
    as accepted; the verdict arrives later through the document store.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return self._url

    @opik.track(name="verification_dispatch", capture_input=False)
    async def classify(self, submission: StageSubmission) -> None:
        files = {
            "file": (submission.file.name, submission.file.content, submission.file.content_type),
        }
        data = {"orderId": submission.process_id, "stage": submission.stage}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, files=files, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Dispatch of {submission.process_id}/{submission.stage} failed: {e}")
            raise DispatchFailure(f"Verification endpoint unreachable: {e}") from e

        if not response.is_success:
            logger.error(
                f"Dispatch of {submission.process_id}/{submission.stage} "
                f"rejected with status {response.status_code}"
            )
            raise DispatchFailure(
                f"Webhook responded with status {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(f"Dispatched {submission.process_id}/{submission.stage} to verification endpoint")
        return None
