import pytest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from stylus_forge.builders.playground_builder import PlaygroundBuilder
from stylus_forge.config.settings import Settings
from stylus_forge.estimators.gas_estimator import ECOSYSTEM_TIP
from stylus_forge.service import compile_contract, compile_contract_sync


class TestCompileContract:
    async def test_success_payload(self, test_settings: Settings, counter_contract: str):
        payload = await compile_contract(counter_contract, "counter", settings=test_settings)

        assert payload["success"]
        assert payload["bytecode"].startswith("0x")
        assert payload["wasmSize"] == len(counter_contract.encode())
        assert payload["abi"].startswith("interface ICounter")
        assert payload["gasEstimate"] == "1234567"
        assert not payload["placeholder"]
        profile = payload["gasProfile"]
        assert profile["totalGasUnits"] == sum(op["gasUsed"] for op in profile["operations"])
        assert profile["optimizationSuggestions"][-1] == ECOSYSTEM_TIP

    async def test_failure_payload(self, test_settings: Settings):
        payload = await compile_contract("fn main() { BROKEN }", settings=test_settings)

        assert not payload["success"]
        assert payload["reason"] == "diagnostics"
        assert payload["errors"][0]["code"] == "E0425"
        assert payload["errors"][0]["location"] == {"file": "src/main.rs", "line": 10, "column": 5}

    async def test_toolchain_unavailable_payload(self, missing_toolchain_settings: Settings):
        payload = await compile_contract("fn main() {}", settings=missing_toolchain_settings)

        assert not payload["success"]
        assert payload["reason"] == "toolchain_unavailable"
        assert payload["installInstructions"] == "Install with: cargo install --force cargo-stylus"

    async def test_fallback_used_when_toolchain_missing(self, missing_toolchain_settings: Settings):
        execute = AsyncMock(return_value={"stdout": "Compilation successful\n", "stderr": ""})

        with patch.object(PlaygroundBuilder, "_execute", execute):
            payload = await compile_contract(
                "struct Counter;", settings=missing_toolchain_settings, use_fallback=True
            )

        execute.assert_awaited_once()
        assert payload["success"]
        assert payload["placeholder"]
        assert "gasProfile" not in payload

    async def test_fallback_not_used_when_toolchain_present(self, test_settings: Settings):
        execute = AsyncMock()

        with patch.object(PlaygroundBuilder, "_execute", execute):
            payload = await compile_contract("fn main() { BROKEN }", settings=test_settings, use_fallback=True)

        execute.assert_not_awaited()
        assert payload["reason"] == "diagnostics"

    async def test_unsupported_language(self, test_settings: Settings):
        payload = await compile_contract("pragma solidity ^0.8.0;", language="solidity", settings=test_settings)

        assert not payload["success"]
        assert "Unsupported language" in payload["errors"][0]["message"]


def test_sync_wrapper(test_settings: Settings, build_root: Path):
    payload = compile_contract_sync("fn main() {}", "counter", settings=test_settings)

    assert payload["success"]
    assert list(build_root.iterdir()) == []
