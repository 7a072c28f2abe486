"""Configuration settings for MythScan using Pydantic."""

import sys
from typing import Optional
from pathlib import Path
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


TRIAL_ETH_ADDRESS = "0x0000000000000000000000000000000000000000"
TRIAL_PASSWORD = "trial"


class AnalysisMode(str, Enum):
    """MythX analysis depth."""

    QUICK = "quick"
    FULL = "full"


class OutputFormat(str, Enum):
    """Available report formats."""

    TEXT = "text"
    STYLISH = "stylish"
    COMPACT = "compact"
    TABLE = "table"
    HTML = "html"
    JSON = "json"


class ModeTiming(BaseModel):
    """Client-side waiting budget for an analysis mode, in seconds."""

    model_config = ConfigDict(frozen=True)

    initial_delay: float
    timeout: float


MODE_TIMINGS = {
    AnalysisMode.QUICK: ModeTiming(initial_delay=20, timeout=180),
    AnalysisMode.FULL: ModeTiming(initial_delay=300, timeout=2400),
}


class Credentials(BaseModel):
    """Identity used to log in to the analysis service."""

    model_config = ConfigDict(frozen=True)

    eth_address: str
    password: str

    @property
    def is_trial(self) -> bool:
        return self.eth_address == TRIAL_ETH_ADDRESS


class AnalysisConfig(BaseModel):
    """Configuration for a single analysis run."""

    mode: AnalysisMode = Field(default=AnalysisMode.QUICK, description="Analysis mode")
    output_format: OutputFormat = Field(default=OutputFormat.TEXT, description="Report format")
    contract_name: Optional[str] = Field(
        default=None,
        description="Contract to analyze (None = default contract of the entry file)",
    )
    client_tool_name: Optional[str] = Field(
        default=None,
        description="clientToolName sent to MythX (None = settings default)",
    )
    no_cache_lookup: bool = Field(default=False, description="Bypass the MythX result cache")
    debug: bool = Field(default=False, description="Echo raw request and response")

    def timing(self) -> ModeTiming:
        """Initial delay and deadline for the configured mode."""
        return MODE_TIMINGS[self.mode]


def default_solc_platform() -> str:
    """Name of the solc binaries directory for the host OS."""
    if sys.platform.startswith("darwin"):
        return "macosx-amd64"
    if sys.platform.startswith("win"):
        return "windows-amd64"
    return "linux-amd64"


class Settings(BaseSettings):
    """Global application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MYTHX_",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    eth_address: Optional[str] = Field(default=None, description="MythX account address")
    password: Optional[str] = Field(default=None, description="MythX account password")
    api_url: str = Field(default="https://api.mythx.io", description="MythX API base URL")
    client_tool_name: str = Field(default="mythscan", description="Default clientToolName")

    # Compiler snapshots
    solc_binaries_url: str = Field(
        default="https://binaries.soliditylang.org",
        description="Base URL of the solc release index and binaries",
    )
    solc_platform: str = Field(
        default_factory=default_solc_platform,
        description="solc binaries platform directory",
    )
    cache_dir: Path = Field(
        default=Path.home() / ".cache" / "mythscan",
        description="Cache directory for compiler snapshots",
    )

    # Network
    request_timeout: float = Field(default=30.0, description="Per-request HTTP timeout in seconds")
    max_poll_retries: int = Field(default=3, ge=0, description="Retries for transient poll failures")
    poll_interval: float = Field(default=5.0, gt=0, description="First status poll interval")
    max_poll_interval: float = Field(default=30.0, gt=0, description="Poll interval ceiling")

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")

    @field_validator("api_url", "solc_binaries_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("cache_dir", mode="before")
    @classmethod
    def expand_cache_dir(cls, v) -> Path:
        """Expand `~` in cache paths coming from the environment."""
        return Path(v).expanduser()

    def credentials(self) -> Credentials:
        """Configured identity, or the trial identity when either half is missing."""
        if self.eth_address and self.password:
            return Credentials(eth_address=self.eth_address, password=self.password)
        return Credentials(eth_address=TRIAL_ETH_ADDRESS, password=TRIAL_PASSWORD)

    @property
    def solc_cache_dir(self) -> Path:
        return self.cache_dir / "solc"
