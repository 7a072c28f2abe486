"""Configuration for MythScan."""

from mythscan.config.settings import (
    AnalysisConfig,
    AnalysisMode,
    Credentials,
    ModeTiming,
    OutputFormat,
    Settings,
)

__all__ = [
    "AnalysisConfig",
    "AnalysisMode",
    "Credentials",
    "ModeTiming",
    "OutputFormat",
    "Settings",
]
