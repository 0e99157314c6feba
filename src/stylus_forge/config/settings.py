# config/settings.py
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


def get_default_temp_root() -> Path:
    """Get the shared root under which build environments are created."""
    return Path(tempfile.gettempdir()) / "stylus-forge"


class Settings(BaseSettings):
    """Application settings."""
    # Toolchain
    cargo_binary: str = Field(default="cargo")
    temp_root: Path = Field(default_factory=get_default_temp_root)

    # Stage time budgets (seconds)
    probe_timeout: float = Field(default=10, gt=0)
    check_timeout: float = Field(default=60, gt=0)
    build_timeout: float = Field(default=120, gt=0)
    abi_timeout: float = Field(default=30, gt=0)
    gas_timeout: float = Field(default=30, gt=0)
    syntax_timeout: float = Field(default=30, gt=0)

    # Remote fallback sandbox
    playground_url: str = Field(default="https://play.rust-lang.org/execute")
    playground_timeout: float = Field(default=30, gt=0)
    playground_channel: str = Field(default="stable")
    playground_mode: str = Field(default="release")
    playground_edition: str = Field(default="2021")

    # Gas pricing used by the estimator
    gas_price_gwei: float = Field(default=0.1, ge=0.0)
    eth_price_usd: float = Field(default=3500.0, ge=0.0)

    # Logging
    log_dir: Optional[Path] = Field(default=None)

    class Config:
        env_file = ".env"
        env_prefix = "STYLUS_FORGE_"


# Create global settings instance
settings = Settings()
