'''
Entry point for the request-handling layer.

Takes {source_text, project_name, language} and returns a JSON-ready
payload: a success payload, or a failure payload whose ``reason`` tells
toolchain-unavailable and timeout failures apart from compiler errors.
'''
import asyncio
from typing import Any, Dict, Optional

from .builders.build_result import BuildFailure, BuildRequest, BuildResult, Diagnostic, FailureKind, Severity
from .builders.playground_builder import PlaygroundBuilder
from .builders.stylus_builder import INSTALL_HINT, StylusBuilder
from .config.settings import Settings, settings as default_settings
from .estimators.gas_estimator import GasEstimator
from .utils.logging import setup_logger

logger = setup_logger()

SUPPORTED_LANGUAGES = ("rust",)


def result_to_payload(result: BuildResult, estimator: Optional[GasEstimator] = None) -> Dict[str, Any]:
    if not result.success:
        payload = {
            "success": False,
            "reason": result.kind.value,
            "errors": [d.to_dict() for d in result.errors],
            "warnings": [d.to_dict() for d in result.warnings],
        }
        if result.kind is FailureKind.TOOLCHAIN_UNAVAILABLE:
            payload["installInstructions"] = INSTALL_HINT
        return payload

    payload = {
        "success": True,
        "bytecode": result.bytecode_hex,
        "abi": result.interface_description,
        "wasmSize": result.artifact_size_bytes,
        "warnings": [d.to_dict() for d in result.warnings],
        "gasEstimate": result.gas_estimate,
        "placeholder": result.placeholder,
    }
    if estimator is not None and not result.placeholder:
        payload["gasProfile"] = estimator.estimate(result.artifact_bytes).to_dict()
    return payload


async def compile_contract(
    source_text: str,
    project_name: str = "contract",
    language: str = "rust",
    use_fallback: bool = False,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Compile a contract and describe the outcome as a payload."""
    settings = settings or default_settings

    if language.lower() not in SUPPORTED_LANGUAGES:
        failure = BuildFailure(errors=[Diagnostic(
            severity=Severity.ERROR,
            message=f"Unsupported language '{language}'. Supported: {', '.join(SUPPORTED_LANGUAGES)}",
        )])
        return result_to_payload(failure)

    request = BuildRequest(source_text=source_text, project_name=project_name)
    builder = StylusBuilder(settings)
    result = await builder.compile(request.source_text, request.project_name)

    if use_fallback and not result.success and result.kind is FailureKind.TOOLCHAIN_UNAVAILABLE:
        logger.warning("Native toolchain unavailable, using remote fallback compiler")
        result = await PlaygroundBuilder(settings).compile(request.source_text)

    return result_to_payload(result, GasEstimator(settings))


def compile_contract_sync(
    source_text: str,
    project_name: str = "contract",
    language: str = "rust",
    use_fallback: bool = False,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Blocking wrapper for callers without an event loop."""
    return asyncio.run(compile_contract(source_text, project_name, language, use_fallback, settings))
