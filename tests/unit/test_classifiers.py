"""Unit tests for the outcome classifiers and ClassifierRouter."""
import random

import httpx
import pytest

from procurematch.core.upload import StageSubmission, UploadedFile
from procurematch.errors import DispatchFailure
from procurematch.services.settings.base import WebhookUrls
from procurematch.services.settings.memory import InMemoryWebhookSettingsStore
from procurematch.services.verification.router import ClassifierRouter
from procurematch.services.verification.simulated import SIMULATED_CONFLICT_REASON, RandomClassifier
from procurematch.services.verification.webhook import ExternalServiceClassifier
from tests.mocks import verified_classifier

WEBHOOK_URL = "https://n8n.example.com/webhook/ab"


def _submission(stage: str = "confirmation") -> StageSubmission:
    return StageSubmission(
        process_id="PO-2025-001",
        stage=stage,
        file=UploadedFile(name="AB_4711.pdf", content=b"%PDF-1.4 body", content_type="application/pdf"),
    )


class TestRandomClassifier:
    @pytest.mark.asyncio
    async def test_probability_one_always_verifies(self):
        classifier = RandomClassifier(verified_probability=1.0)
        for _ in range(20):
            outcome = await classifier.classify(_submission())
            assert outcome.status == "verified"
            assert outcome.conflict_reason is None

    @pytest.mark.asyncio
    async def test_probability_zero_always_conflicts(self):
        classifier = RandomClassifier(verified_probability=0.0)
        outcome = await classifier.classify(_submission())
        assert outcome.status == "conflict"
        assert outcome.conflict_reason == SIMULATED_CONFLICT_REASON

    @pytest.mark.asyncio
    async def test_seeded_rng_is_reproducible(self):
        first = RandomClassifier(rng=random.Random(42))
        second = RandomClassifier(rng=random.Random(42))
        a = [(await first.classify(_submission())).status for _ in range(10)]
        b = [(await second.classify(_submission())).status for _ in range(10)]
        assert a == b

    @pytest.mark.asyncio
    async def test_custom_conflict_reason(self):
        classifier = RandomClassifier(verified_probability=0.0, conflict_reason="Demo conflict")
        outcome = await classifier.classify(_submission())
        assert outcome.conflict_reason == "Demo conflict"

    @pytest.mark.parametrize("probability", [-0.1, 1.5])
    def test_rejects_probability_out_of_range(self, probability):
        with pytest.raises(ValueError):
            RandomClassifier(verified_probability=probability)


class TestExternalServiceClassifier:
    @pytest.mark.asyncio
    async def test_posts_multipart_form(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        classifier = ExternalServiceClassifier(WEBHOOK_URL, transport=httpx.MockTransport(handler))
        result = await classifier.classify(_submission())

        assert result is None
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == WEBHOOK_URL
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.read()
        assert b'name="file"; filename="AB_4711.pdf"' in body
        assert b"%PDF-1.4 body" in body
        assert b'name="orderId"' in body and b"PO-2025-001" in body
        assert b'name="stage"' in body and b"confirmation" in body

    @pytest.mark.asyncio
    async def test_any_2xx_is_accepted(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        classifier = ExternalServiceClassifier(WEBHOOK_URL, transport=transport)
        assert await classifier.classify(_submission()) is None

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="workflow crashed"))
        classifier = ExternalServiceClassifier(WEBHOOK_URL, transport=transport)

        with pytest.raises(DispatchFailure) as exc_info:
            await classifier.classify(_submission())

        assert exc_info.value.status_code == 500
        assert "500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_raises_without_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        classifier = ExternalServiceClassifier(WEBHOOK_URL, transport=httpx.MockTransport(handler))

        with pytest.raises(DispatchFailure) as exc_info:
            await classifier.classify(_submission())

        assert exc_info.value.status_code is None


class TestClassifierRouter:
    def test_no_url_uses_fallback(self):
        fallback = verified_classifier()
        router = ClassifierRouter(InMemoryWebhookSettingsStore(), fallback)
        assert router.for_stage("confirmation") is fallback
        assert router.for_stage("delivery") is fallback

    def test_configured_url_uses_external_service(self):
        settings = InMemoryWebhookSettingsStore(WebhookUrls(delivery=WEBHOOK_URL))
        router = ClassifierRouter(settings, verified_classifier())

        classifier = router.for_stage("delivery")

        assert isinstance(classifier, ExternalServiceClassifier)
        assert classifier.url == WEBHOOK_URL
        assert router.for_stage("confirmation") is router.fallback

    def test_saved_settings_apply_to_next_lookup(self):
        settings = InMemoryWebhookSettingsStore()
        router = ClassifierRouter(settings, verified_classifier())
        assert router.for_stage("confirmation") is router.fallback

        settings.save(WebhookUrls(confirmation=WEBHOOK_URL))

        assert isinstance(router.for_stage("confirmation"), ExternalServiceClassifier)

    def test_blank_url_means_fallback(self):
        settings = InMemoryWebhookSettingsStore(WebhookUrls(confirmation="   "))
        router = ClassifierRouter(settings, verified_classifier())
        assert router.for_stage("confirmation") is router.fallback
