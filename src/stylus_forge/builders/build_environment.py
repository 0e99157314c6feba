'''
Ephemeral, exclusively owned build directories.
'''
import re
import shutil
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from ..errors import EnvironmentSetupError
from ..utils.logging import setup_logger

logger = setup_logger()

WASM_TARGET = "wasm32-unknown-unknown"

CONTRACT_MANIFEST = """[package]
name = "{name}"
version = "0.1.0"
edition = "2021"

[dependencies]
alloy-primitives = "0.7.6"
alloy-sol-types = "0.7.6"
stylus-sdk = "0.6.0"
hex = "0.4.3"

[dev-dependencies]
tokio = {{ version = "1.12.0", features = ["full"] }}
ethers = "2.0.0"

[features]
export-abi = ["stylus-sdk/export-abi"]

[[bin]]
name = "{name}"
path = "src/main.rs"

[profile.release]
codegen-units = 1
strip = true
lto = true
panic = "abort"
opt-level = "z"
"""

VALIDATOR_MANIFEST = """[package]
name = "{name}"
version = "0.1.0"
edition = "2021"

[dependencies]
stylus-sdk = "0.6.0"
alloy-primitives = "0.7.6"
"""


def sanitize_project_name(project_name: str) -> str:
    """Reduce a project name to something safe as a crate and file name."""
    name = re.sub(r'[^a-z0-9_]+', '_', project_name.strip().lower()).strip('_')
    if not name:
        return "contract"
    if not name[0].isalpha():
        name = f"contract_{name}"
    return name[:64]


@dataclass(frozen=True)
class BuildEnvironment:
    """A directory holding one manifest and one source file."""
    root: Path
    crate_name: str

    @property
    def manifest_path(self) -> Path:
        return self.root / "Cargo.toml"

    @property
    def source_path(self) -> Path:
        return self.root / "src" / "main.rs"

    @property
    def artifact_path(self) -> Path:
        return self.root / "target" / WASM_TARGET / "release" / f"{self.crate_name}.wasm"


def _unique_dir_name(crate_name: str) -> str:
    return f"{crate_name}-{time.time_ns()}-{uuid.uuid4().hex[:8]}"


@contextmanager
def build_environment(
    temp_root: Path,
    project_name: str,
    source_text: str,
    manifest_template: str = CONTRACT_MANIFEST
) -> Iterator[BuildEnvironment]:
    """Create a build directory and remove it on every exit path."""
    crate_name = sanitize_project_name(project_name)
    env = BuildEnvironment(root=temp_root / _unique_dir_name(crate_name), crate_name=crate_name)

    try:
        try:
            env.source_path.parent.mkdir(parents=True, exist_ok=False)
            env.manifest_path.write_text(manifest_template.format(name=crate_name))
            env.source_path.write_text(source_text)
        except OSError as e:
            raise EnvironmentSetupError(f"Failed to prepare build directory {env.root}: {e}") from e

        logger.debug("Prepared build environment %s", env.root)
        yield env

    finally:
        shutil.rmtree(env.root, ignore_errors=True)
        if env.root.exists():
            logger.warning("Could not fully remove build directory %s", env.root)
        else:
            logger.debug("Removed build environment %s", env.root)
