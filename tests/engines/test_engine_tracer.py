"""
Tests for the engine invocation tracer.
"""

from decimal import Decimal
from uuid import UUID

from discount_engines.tracer import compute_input_fingerprint, traced_engine
from discount_engines.volume import resolve_volume_tier
from discount_kernel.domain.volume import MeasurementType


class TestFingerprint:

    def test_deterministic(self):
        args = {"value": Decimal("10.5"), "role": "sales"}
        assert compute_input_fingerprint(("value", "role"), args) == compute_input_fingerprint(
            ("value", "role"), dict(args),
        )

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("value",), {"value": Decimal("1")})
        b = compute_input_fingerprint(("value",), {"value": Decimal("2")})
        assert a != b

    def test_missing_fields_are_null(self):
        assert compute_input_fingerprint(("absent",), {}) == compute_input_fingerprint(
            ("absent",), {"absent": None},
        )

    def test_set_order_irrelevant(self):
        a = compute_input_fingerprint(("days",), {"days": frozenset({0, 6, 3})})
        b = compute_input_fingerprint(("days",), {"days": frozenset({6, 3, 0})})
        assert a == b

    def test_prefix_length(self):
        assert len(compute_input_fingerprint(("x",), {"x": UUID(int=1)})) == 16


class TestTracedEngine:

    def test_emits_trace(self, captured_logs):
        @traced_engine("demo", "2.1", fingerprint_fields=("amount",))
        def double(amount):
            return amount * 2

        assert double(Decimal("4")) == Decimal("8")

        (trace,) = [r for r in captured_logs() if r["message"] == "DISCOUNT_ENGINE_TRACE"]
        assert trace["engine_name"] == "demo"
        assert trace["engine_version"] == "2.1"
        assert trace["input_fingerprint"] == compute_input_fingerprint(
            ("amount",), {"amount": Decimal("4")},
        )
        assert trace["logger"] == "discount_kernel.engines.tracer"

    def test_real_engine_traced(self, captured_logs, make_tier_set):
        resolve_volume_tier([make_tier_set()], MeasurementType.TOTAL_SQFT, Decimal("1200"))
        names = [r.get("engine_name") for r in captured_logs() if r["message"] == "DISCOUNT_ENGINE_TRACE"]
        assert names == ["volume"]
