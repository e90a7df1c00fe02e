"""
Configuration management for the scenario runner.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


@dataclass
class HarnessConfig:
    """Main configuration for the scenario runner."""
    # Paths
    scenario_dir: str = "scenarios"
    report_path: Optional[str] = None

    # Execution settings
    stop_on_first_failure: bool = False
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Load configuration from environment variables."""
        config = cls()
        config.scenario_dir = os.environ.get("SCENARIO_DIR", config.scenario_dir)
        config.report_path = os.environ.get("REPORT_PATH") or None
        config.verbose = _env_flag("VERBOSE")
        config.stop_on_first_failure = _env_flag("STOP_ON_FIRST_FAILURE")
        return config
