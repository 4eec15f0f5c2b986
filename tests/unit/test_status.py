"""Unit tests for aggregate status derivation."""
import itertools

import pytest

from procurematch.core.process import Process, Step
from procurematch.core.status import derive_status

STEP_STATUSES = ["pending", "analyzing", "verified", "conflict"]
ALL_COMBINATIONS = list(itertools.product(STEP_STATUSES, repeat=3))
CONFLICT_FREE = [c for c in ALL_COMBINATIONS if "conflict" not in c[1:]]


def _process(order: str, confirmation: str, delivery: str) -> Process:
    return Process(
        id="PO-1",
        order=Step(status=order),
        confirmation=Step(status=confirmation),
        delivery=Step(status=delivery),
    )


class TestDeriveStatus:
    def test_all_pending_is_open(self):
        assert derive_status(_process("pending", "pending", "pending")) == "open"

    def test_confirmation_conflict(self):
        assert derive_status(_process("verified", "conflict", "pending")) == "conflict"

    def test_delivery_conflict(self):
        assert derive_status(_process("verified", "verified", "conflict")) == "conflict"

    def test_delivery_verified_is_completed(self):
        assert derive_status(_process("verified", "verified", "verified")) == "completed"

    def test_conflict_beats_completed(self):
        assert derive_status(_process("verified", "conflict", "verified")) == "conflict"

    def test_order_conflict_does_not_count(self):
        assert derive_status(_process("conflict", "pending", "pending")) == "open"

    @pytest.mark.parametrize("order,confirmation,delivery", ALL_COMBINATIONS)
    def test_conflict_iff_confirmation_or_delivery_conflict(self, order, confirmation, delivery):
        status = derive_status(_process(order, confirmation, delivery))
        has_conflict = "conflict" in (confirmation, delivery)
        assert (status == "conflict") == has_conflict

    @pytest.mark.parametrize("order,confirmation,delivery", CONFLICT_FREE)
    def test_completed_iff_delivery_verified_without_conflict(self, order, confirmation, delivery):
        status = derive_status(_process(order, confirmation, delivery))
        assert (status == "completed") == (delivery == "verified")
