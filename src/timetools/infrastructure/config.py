"""Configuration constants, .env parsing, and build information."""

from __future__ import annotations

import os
import platform
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from pydantic import BaseModel, ConfigDict


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ. Values are only consulted by the
    module-level settings below, so shell commands run by the scheduler
    do not inherit them.
    """
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


def _setting(name: str, default: str) -> str:
    return os.environ.get(name) or _env_config.get(name, default)


# Read config values from .env (falls back to os.environ).
_env_config = read_env_file([
    "TIMETOOLS_DATA_DIR",
    "TIMETOOLS_HEARTBEAT_SECONDS",
    "TIMETOOLS_SHELL_SINK",
    "TIMETOOLS_COMMAND_TIMEOUT",
])

# Engine constants
TICK_MS: int = 50
TICKS_PER_SECOND: int = 1000 // TICK_MS
MIN_EXECUTION_INTERVAL: int = 2  # ticks
MAX_EXECUTION_INTERVAL: int = 120  # ticks

HEARTBEAT_INTERVAL: float = float(_setting("TIMETOOLS_HEARTBEAT_SECONDS", "60"))  # seconds
SHELL_SINK_ENABLED: bool = _setting("TIMETOOLS_SHELL_SINK", "true").lower() == "true"
COMMAND_TIMEOUT: float = float(_setting("TIMETOOLS_COMMAND_TIMEOUT", "300"))  # seconds

# Absolute paths
PROJECT_ROOT: Path = Path.cwd()
DATA_DIR: Path = Path(_setting("TIMETOOLS_DATA_DIR", str(PROJECT_ROOT / "data"))).resolve()
TASKS_FILE: Path = DATA_DIR / "tasks.yml"


class SchedulerConfig:
    """Timing configuration for the scheduling engine."""

    def __init__(self, heartbeat_interval: float = HEARTBEAT_INTERVAL, tick_ms: int = TICK_MS) -> None:
        self.heartbeat_interval = heartbeat_interval
        self.tick_ms = tick_ms

    def heartbeat_ms(self) -> int:
        return int(self.heartbeat_interval * 1000)

    def ticks_to_ms(self, ticks: int) -> int:
        return ticks * self.tick_ms


class BuildInfo(BaseModel):
    """Static build information, loaded once at startup."""

    model_config = ConfigDict(frozen=True)

    name: str = "TimeTools"
    version: str
    python_version: str
    platform: str

    def full_version(self) -> str:
        return f"{self.name} v{self.version}"

    def system_info(self) -> str:
        return f"Python {self.python_version}, OS: {self.platform}"


def load_build_info(distribution: str = "timetools") -> BuildInfo:
    try:
        dist_version = version(distribution)
    except PackageNotFoundError:
        dist_version = "0.0.0+unknown"
    return BuildInfo(
        version=dist_version,
        python_version=platform.python_version(),
        platform=f"{platform.system()} {platform.release()}".strip() or sys.platform,
    )
