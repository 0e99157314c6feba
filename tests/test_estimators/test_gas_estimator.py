import pytest

from stylus_forge.config.settings import Settings
from stylus_forge.estimators.gas_estimator import (
    DEFAULT_GAS_COST,
    ECOSYSTEM_TIP,
    GasEstimator,
    categorize_operation,
    estimate_deployment_gas,
    friendly_name,
    synthesize_operations,
)


@pytest.fixture
def estimator() -> GasEstimator:
    return GasEstimator(Settings(gas_price_gwei=0.1, eth_price_usd=3500))


class TestGasEstimator:
    def test_thousand_byte_artifact(self, estimator: GasEstimator):
        profile = estimator.estimate(b"\x00" * 1000)

        assert profile.total_gas_units > 0
        assert any(op.category == "storage" for op in profile.operations)
        assert profile.optimization_suggestions[-1] == ECOSYSTEM_TIP

    @pytest.mark.parametrize("size", [0, 1, 99, 501, 1000, 24 * 1024])
    def test_operation_totals_add_up(self, estimator: GasEstimator, size: int):
        profile = estimator.estimate(b"\x01" * size)

        assert sum(op.gas_used for op in profile.operations) == profile.total_gas_units
        assert sum(op.percentage_of_total for op in profile.operations) == pytest.approx(100.0, abs=0.1)

    def test_constructor_call_always_present(self, estimator: GasEstimator):
        profile = estimator.estimate(b"")

        assert profile.total_gas_units == 100
        assert [(op.name, op.occurrence_count, op.category) for op in profile.operations] == [
            ("Function Call", 1, "call")
        ]

    def test_event_only_above_threshold(self, estimator: GasEstimator):
        small = estimator.estimate(b"\x00" * 500)
        large = estimator.estimate(b"\x00" * 501)

        assert not any(op.category == "event" for op in small.operations)
        assert [op.name for op in large.operations if op.category == "event"] == ["Indexed Event"]

    def test_operations_aggregated_by_opcode(self, estimator: GasEstimator):
        profile = estimator.estimate(b"\x00" * 1000)
        by_opcode = {op.opcode: op for op in profile.operations}

        # 1 constructor + 1000 // 200 calls
        assert by_opcode["call"].occurrence_count == 6
        assert by_opcode["call"].gas_used == 600
        assert by_opcode["storage.store"].occurrence_count == 5
        assert by_opcode["storage.store"].gas_used == 100000

    def test_estimated_cost(self, estimator: GasEstimator):
        profile = estimator.estimate(b"\x00" * 1000)
        expected = profile.total_gas_units * 0.1 * 3500 / 1e9
        assert profile.estimated_cost_eth == pytest.approx(expected)

    def test_suggestions_for_large_artifact(self, estimator: GasEstimator):
        suggestions = estimator.estimate(b"\x00" * 1000).optimization_suggestions

        assert suggestions[0].startswith("Storage operations account for over 50%")
        assert suggestions[1] == (
            'Operation "Memory Copy" is called 13 times. '
            'Consider caching results or optimizing the loop.'
        )
        assert any("packed storage" in s for s in suggestions)

    def test_call_heavy_profile(self, estimator: GasEstimator):
        suggestions = estimator.estimate(b"").optimization_suggestions
        assert suggestions == [
            "Function calls are expensive. Consider inlining small functions or reducing call depth.",
            ECOSYSTEM_TIP,
        ]

    def test_division_suggestion_with_custom_stream(self):
        estimator = GasEstimator(synthesizer=lambda size: ["call", "i32.div", "i64.div"])

        suggestions = estimator.estimate(b"\x00").optimization_suggestions

        assert any("bit shifting" in s for s in suggestions)
        assert suggestions[-1] == ECOSYSTEM_TIP

    def test_unknown_opcode_uses_default_cost(self):
        estimator = GasEstimator(synthesizer=lambda size: ["br_table", "br_table"])

        profile = estimator.estimate(b"\x00")

        assert profile.total_gas_units == 2 * DEFAULT_GAS_COST
        assert profile.operations[0].name == "Br Table"
        assert profile.operations[0].category == "computation"


@pytest.mark.parametrize("opcode, category", [
    ("storage.load", "storage"),
    ("i32.store", "storage"),
    ("memory.grow", "memory"),
    ("call_indirect", "call"),
    ("log2", "event"),
    ("event.emit", "event"),
    ("i64.mul", "computation"),
])
def test_categorize_operation(opcode: str, category: str):
    assert categorize_operation(opcode) == category


def test_friendly_name_fallback():
    assert friendly_name("storage.load") == "Storage Read"
    assert friendly_name("local_get") == "Local Get"


def test_synthesized_stream_counts():
    ops = synthesize_operations(1000)

    assert ops[0] == "call"
    assert ops.count("storage.load") + ops.count("storage.store") == 10
    assert ops.count("memory.grow") + ops.count("memory.copy") == 20
    assert ops.count("log1") == 1


class TestDeploymentQuote:
    def test_quote_from_source(self):
        source = "fn main() { let x = 1; }"

        quote = estimate_deployment_gas(source)

        expected_evm = 21000 + len(source) * 10 + 2 * 500
        assert quote.evm_equivalent_gas == expected_evm
        assert quote.gas_estimate == int(expected_evm * 0.01)
        assert quote.to_dict()["savings"] == "99%"

    def test_gwei_rendering(self):
        assert estimate_deployment_gas("").to_dict()["gasEstimateGwei"] == "0.0000"
