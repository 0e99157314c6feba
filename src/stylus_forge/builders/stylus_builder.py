'''
Modules that handles building Stylus contracts with the native toolchain.
'''
import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import psutil

from ..config.settings import Settings, settings as default_settings
from ..errors import EnvironmentSetupError, ToolchainTimeoutError
from ..utils.diagnostics import STYLUS_RULES, parse_diagnostics, parse_stylus_diagnostics
from ..utils.logging import setup_logger
from .build_environment import VALIDATOR_MANIFEST, WASM_TARGET, BuildEnvironment, build_environment
from .build_result import (
    BuildFailure,
    BuildResult,
    BuildSuccess,
    Diagnostic,
    FailureKind,
    Severity,
    SyntaxCheck,
)

logger = setup_logger()

INSTALL_HINT = "Install with: cargo install --force cargo-stylus"
GAS_RE = re.compile(r'(\d+)\s+gas')
SUMMARY_RE = re.compile(r'^(could not compile|aborting due to|.* generated \d+ warnings?)')


@dataclass
class CommandOutput:
    returncode: int
    stdout: str
    stderr: str
    duration: float


def toolchain_missing_diagnostic() -> Diagnostic:
    return Diagnostic(
        severity=Severity.ERROR,
        message=f"cargo-stylus is not installed. {INSTALL_HINT}",
        suggestion=INSTALL_HINT,
    )


def timeout_diagnostic(error: ToolchainTimeoutError) -> Diagnostic:
    return Diagnostic(
        severity=Severity.ERROR,
        message=f"Build timed out: {error}",
        suggestion="Retry the build; if it keeps timing out, reduce contract size or dependencies",
    )


def _kill_process_tree(pid: int) -> None:
    """Kill a process and everything it spawned (cargo forks rustc)."""
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return
    for proc in children + [parent]:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass


def _merge(into: List[Diagnostic], new: List[Diagnostic]) -> None:
    """Append diagnostics not already present, keeping first-seen order."""
    seen = {(d.severity, d.code, d.message, d.location) for d in into}
    for diag in new:
        key = (diag.severity, diag.code, diag.message, diag.location)
        if key not in seen:
            seen.add(key)
            into.append(diag)


class StylusBuilder:
    """Compiles Stylus contracts to WASM using cargo and cargo-stylus."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.cargo = self.settings.cargo_binary

    async def _run_command(
        self,
        cmd: List[str],
        cwd: Optional[Path],
        timeout: float,
    ) -> CommandOutput:
        """Run a command asynchronously, killing it if it overruns."""
        start_time = datetime.now()
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            _kill_process_tree(process.pid)
            await process.wait()
            stage = " ".join(["cargo"] + cmd[1:])
            logger.error("'%s' timed out after %s seconds", stage, timeout)
            raise ToolchainTimeoutError(stage, timeout) from e
        except asyncio.CancelledError:
            _kill_process_tree(process.pid)
            await process.wait()
            raise

        output = CommandOutput(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
            duration=(datetime.now() - start_time).total_seconds(),
        )
        logger.debug(self._create_build_log(cmd, cwd, output))
        return output

    def _create_build_log(self, cmd: List[str], cwd: Optional[Path], output: CommandOutput) -> str:
        """Create a detailed build log."""
        return f"""
========== Build Log ==========
Command: {' '.join(cmd)}
Working Directory: {cwd}
Exit Code: {output.returncode}
Duration: {output.duration:.2f} seconds
Timestamp: {datetime.now().isoformat()}

STDOUT:
{output.stdout}

STDERR:
{output.stderr}
==============================
"""

    async def toolchain_version(self) -> Optional[str]:
        """Get the cargo-stylus version, or None if it is not installed."""
        try:
            output = await self._run_command(
                [self.cargo, "stylus", "--version"], None, self.settings.probe_timeout
            )
        except (OSError, ToolchainTimeoutError) as e:
            logger.debug("cargo-stylus probe failed: %s", e)
            return None
        if output.returncode != 0:
            return None
        return output.stdout.strip() or None

    async def is_toolchain_available(self) -> bool:
        return await self.toolchain_version() is not None

    async def _cargo_available(self) -> bool:
        try:
            output = await self._run_command(
                [self.cargo, "--version"], None, self.settings.probe_timeout
            )
        except (OSError, ToolchainTimeoutError):
            return False
        return output.returncode == 0

    def _interpret(self, stage: str, output: CommandOutput) -> Tuple[List[Diagnostic], List[Diagnostic]]:
        """Split a stage's output into (errors, non-fatal diagnostics)."""
        # Known cargo-stylus failures are reported once, by the lookup table
        diagnostics = [
            d for d in parse_diagnostics(output.stderr)
            if not any(rule.marker in d.message for rule in STYLUS_RULES)
        ]
        diagnostics += parse_stylus_diagnostics(output.stdout + "\n" + output.stderr)

        errors = [d for d in diagnostics if d.is_error]
        others = [d for d in diagnostics if not d.is_error and not SUMMARY_RE.match(d.message)]
        if len(errors) > 1:
            errors = [d for d in errors if not SUMMARY_RE.match(d.message)] or errors

        if output.returncode != 0 and not errors:
            errors.append(Diagnostic(
                severity=Severity.ERROR,
                message=f"'{stage}' failed with exit code {output.returncode}",
            ))
        return errors, others

    async def compile(self, source_text: str, project_name: str = "contract") -> BuildResult:
        """Check, build and package a contract. Never raises."""
        if not await self.is_toolchain_available():
            logger.error("cargo-stylus is not installed")
            return BuildFailure(
                errors=[toolchain_missing_diagnostic()],
                kind=FailureKind.TOOLCHAIN_UNAVAILABLE,
            )

        try:
            with build_environment(self.settings.temp_root, project_name, source_text) as env:
                return await self._run_pipeline(env)
        except ToolchainTimeoutError as e:
            return BuildFailure(errors=[timeout_diagnostic(e)], kind=FailureKind.TIMEOUT)
        except (EnvironmentSetupError, OSError) as e:
            logger.error("Build environment error: %s", e)
            return BuildFailure(
                errors=[Diagnostic(severity=Severity.ERROR, message=str(e))],
                kind=FailureKind.ENVIRONMENT,
            )

    async def _run_pipeline(self, env: BuildEnvironment) -> BuildResult:
        warnings: List[Diagnostic] = []

        # Fast check first; the optimized build only runs on a clean check
        check = await self._run_command(
            [self.cargo, "stylus", "check"], env.root, self.settings.check_timeout
        )
        errors, found = self._interpret("cargo stylus check", check)
        _merge(warnings, found)
        if errors:
            logger.error("Cargo stylus check failed with %d error(s)", len(errors))
            return BuildFailure(errors=errors, warnings=warnings)

        build = await self._run_command(
            [self.cargo, "build", "--release", "--target", WASM_TARGET],
            env.root,
            self.settings.build_timeout,
        )
        errors, found = self._interpret("cargo build", build)
        _merge(warnings, found)
        if errors:
            logger.error("Release build failed with %d error(s)", len(errors))
            return BuildFailure(errors=errors, warnings=warnings)

        artifact = env.artifact_path.read_bytes() if env.artifact_path.is_file() else b""
        if not artifact:
            relative = env.artifact_path.relative_to(env.root)
            logger.error("Artifact missing or empty at %s", env.artifact_path)
            return BuildFailure(
                errors=[Diagnostic(
                    severity=Severity.ERROR,
                    message=(
                        f"Build succeeded but no artifact was found at {relative}"
                        if not env.artifact_path.is_file()
                        else f"Build succeeded but produced an empty artifact at {relative}"
                    ),
                    suggestion="Check that the wasm32-unknown-unknown target is installed: "
                               "rustup target add wasm32-unknown-unknown",
                )],
                warnings=warnings,
                kind=FailureKind.ENVIRONMENT,
            )

        abi = await self._export_abi(env)
        if abi is None:
            warnings.append(Diagnostic(severity=Severity.WARNING, message="Failed to export ABI"))

        gas_estimate = await self._estimate_gas(env)

        logger.info("Build successful: %d bytes", len(artifact))
        return BuildSuccess(
            artifact_bytes=artifact,
            interface_description=abi,
            warnings=warnings,
            gas_estimate=gas_estimate,
        )

    async def _export_abi(self, env: BuildEnvironment) -> Optional[str]:
        try:
            output = await self._run_command(
                [self.cargo, "stylus", "export-abi"], env.root, self.settings.abi_timeout
            )
        except (OSError, ToolchainTimeoutError) as e:
            logger.warning("ABI export failed: %s", e)
            return None
        if output.returncode != 0 or not output.stdout.strip():
            logger.warning("ABI export failed with exit code %d", output.returncode)
            return None
        return output.stdout.strip()

    async def _estimate_gas(self, env: BuildEnvironment) -> Optional[str]:
        try:
            output = await self._run_command(
                [self.cargo, "stylus", "estimate-gas"], env.root, self.settings.gas_timeout
            )
        except (OSError, ToolchainTimeoutError) as e:
            logger.debug("Gas estimation skipped: %s", e)
            return None
        match = GAS_RE.search(output.stdout) if output.returncode == 0 else None
        return match.group(1) if match else None

    async def validate_syntax_only(self, source_text: str) -> SyntaxCheck:
        """Run plain cargo check against a minimal manifest."""
        if not await self._cargo_available():
            return SyntaxCheck(valid=False, errors=[Diagnostic(
                severity=Severity.ERROR,
                message="cargo is not installed. Install Rust from https://rustup.rs",
                suggestion="Install Rust from https://rustup.rs",
            )])

        try:
            with build_environment(
                self.settings.temp_root, "validator", source_text, VALIDATOR_MANIFEST
            ) as env:
                output = await self._run_command(
                    [self.cargo, "check"], env.root, self.settings.syntax_timeout
                )
        except ToolchainTimeoutError as e:
            return SyntaxCheck(valid=False, errors=[timeout_diagnostic(e)])
        except (EnvironmentSetupError, OSError) as e:
            return SyntaxCheck(valid=False, errors=[
                Diagnostic(severity=Severity.ERROR, message=str(e))
            ])

        errors, _ = self._interpret("cargo check", output)
        if errors:
            logger.info("Syntax check found %d error(s)", len(errors))
            return SyntaxCheck(valid=False, errors=errors)
        return SyntaxCheck(valid=True)
