import pytest
import stat
import tempfile
from pathlib import Path
from typing import Generator

from stylus_forge.config.settings import Settings

# Emulates the parts of cargo / cargo-stylus the builder drives. Behaviour
# is switched by marker words in src/main.rs.
FAKE_CARGO = r"""#!/bin/sh
src=src/main.rs
name=$(sed -n 's/^name = "\(.*\)"$/\1/p' Cargo.toml 2>/dev/null | head -n 1)
has() { grep -q "$1" "$src" 2>/dev/null; }

# Records the sleeping child next to this script so tests can check it was killed
slow() {
    sleep 30 &
    echo $! > "$(dirname "$0")/slow.pid"
    wait $!
}

broken() {
    cat >&2 <<'OUT'
error[E0425]: cannot find value `x` in this scope
 --> src/main.rs:10:5
   |
10 |     x + 1
   |     ^ not found in this scope

error: could not compile `contract` (bin "contract") due to 1 previous error
OUT
    exit 101
}

case "$1 $2" in
    "--version ")
        echo "cargo 1.80.0"
        ;;
    "stylus --version")
        echo "cargo stylus 0.5.3"
        ;;
    "stylus check")
        if has SLOW_CHECK; then slow; fi
        if has WARN_ME; then
            echo 'warning: unused variable: `y`' >&2
            echo ' --> src/main.rs:3:9' >&2
            echo '  = help: if this is intentional, prefix it with an underscore: `_y`' >&2
        fi
        if has BROKEN; then broken; fi
        if has SIZE_ON_STDERR; then
            echo "error: contract exceeds maximum size: 30 KB" >&2
            exit 1
        fi
        if has TOO_BIG; then
            echo "contract exceeds maximum size: 30 KB"
            exit 1
        fi
        echo "contract size: 1 KB"
        ;;
    "build --release")
        if has WARN_ME; then
            echo 'warning: unused variable: `y`' >&2
            echo ' --> src/main.rs:3:9' >&2
        fi
        if has NO_ARTIFACT; then exit 0; fi
        out=target/wasm32-unknown-unknown/release
        mkdir -p "$out"
        cp "$src" "$out/$name.wasm"
        ;;
    "stylus export-abi")
        if has NO_ABI; then
            echo "failed to export abi" >&2
            exit 1
        fi
        echo "interface ICounter { function number() external view returns (uint256); }"
        ;;
    "stylus estimate-gas")
        if has NO_GAS; then exit 1; fi
        echo "deployment tx gas: 1234567 gas"
        ;;
    "check ")
        if has SLOW_CHECK; then slow; fi
        if has BROKEN; then broken; fi
        ;;
    *)
        echo "unexpected arguments: $*" >&2
        exit 2
        ;;
esac
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def fake_cargo(temp_dir: Path) -> Path:
    """Write the fake cargo executable."""
    path = temp_dir / "bin" / "cargo"
    path.parent.mkdir()
    path.write_text(FAKE_CARGO)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def build_root(temp_dir: Path) -> Path:
    return temp_dir / "builds"


@pytest.fixture
def test_settings(fake_cargo: Path, build_root: Path) -> Settings:
    """Settings pointing at the fake toolchain with short budgets."""
    return Settings(
        cargo_binary=str(fake_cargo),
        temp_root=build_root,
        check_timeout=5,
        syntax_timeout=5,
        build_timeout=10,
        abi_timeout=5,
        gas_timeout=5,
        probe_timeout=5,
    )


@pytest.fixture
def missing_toolchain_settings(temp_dir: Path, build_root: Path) -> Settings:
    return Settings(cargo_binary=str(temp_dir / "no-such-cargo"), temp_root=build_root)


@pytest.fixture
def counter_contract() -> str:
    """Sample Stylus contract for testing."""
    return """
#![cfg_attr(not(feature = "export-abi"), no_main)]
extern crate alloc;

use stylus_sdk::{alloy_primitives::U256, prelude::*};

sol_storage! {
    #[entrypoint]
    pub struct Counter {
        uint256 number;
    }
}

#[public]
impl Counter {
    pub fn number(&self) -> U256 {
        self.number.get()
    }

    pub fn increment(&mut self) {
        let number = self.number.get();
        self.number.set(number + U256::from(1));
    }
}
"""


@pytest.fixture
def rustc_error_output() -> str:
    """Sample rustc stderr with one error and one warning."""
    return """   Compiling counter v0.1.0 (/tmp/stylus-forge/counter)
warning: unused variable: `y`
 --> src/main.rs:3:9
  |
3 |     let y = 5;
  |         ^ help: if this is intentional, prefix it with an underscore: `_y`
  |
  = note: `#[warn(unused_variables)]` on by default

error[E0425]: cannot find value `x` in this scope
 --> src/main.rs:10:5
   |
10 |     x + 1
   |     ^ not found in this scope
   = help: consider importing this constant

error: could not compile `counter` (bin "counter") due to 1 previous error; 1 warning emitted
"""
