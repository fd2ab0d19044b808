"""Environment-driven server configuration.

All values are read once at startup. Durations are configured in milliseconds
in the environment and stored in seconds.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

HeadlessMode = Literal["virtual-display", "cli-only", "idb-companion"]
LogLevel = Literal["debug", "info", "warning", "error"]

DEFAULT_ARTIFACTS_DIR = Path.home() / "tmp" / "rn-simulator-testing"


class SimulatorSettings(BaseModel):
    default_device: str = "iPhone 15 Pro"
    default_ios_version: str = "17.0"
    timeout: float = Field(default=30.0, ge=5.0, description="Boot/shutdown timeout (s)")
    auto_boot_on_create: bool = True
    poll_interval: float = Field(default=1.0, gt=0)


class ReactNativeSettings(BaseModel):
    default_bundle_id: str = ""


class IDBSettings(BaseModel):
    timeout: float = Field(default=30.0, gt=0)
    retry_attempts: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)


class ArtifactSettings(BaseModel):
    screenshot_path: str = ""
    video_path: str = ""

    @property
    def screenshot_dir(self) -> Path:
        return Path(self.screenshot_path) if self.screenshot_path else DEFAULT_ARTIFACTS_DIR

    @property
    def video_dir(self) -> Path:
        return Path(self.video_path) if self.video_path else DEFAULT_ARTIFACTS_DIR


class DisplaySettings(BaseModel):
    id: str = ":99"
    resolution: str = "1024x768"
    color_depth: int = 24


class CompanionSettings(BaseModel):
    port: int = Field(default=10880, gt=0, lt=65536)
    enable_tls: bool = False


class HeadlessSettings(BaseModel):
    enabled: bool = False
    mode: HeadlessMode = "cli-only"
    display: DisplaySettings = Field(default_factory=DisplaySettings)
    companion: CompanionSettings = Field(default_factory=CompanionSettings)


class LoggingSettings(BaseModel):
    level: LogLevel = "info"
    log_file: str | None = None


class ServerConfig(BaseModel):
    """Complete server configuration."""

    name: str = "rn-ios-simulator-mcp"
    version: str = "1.0.0"
    simulator: SimulatorSettings = Field(default_factory=SimulatorSettings)
    react_native: ReactNativeSettings = Field(default_factory=ReactNativeSettings)
    idb: IDBSettings = Field(default_factory=IDBSettings)
    artifacts: ArtifactSettings = Field(default_factory=ArtifactSettings)
    headless: HeadlessSettings = Field(default_factory=HeadlessSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        """Build configuration from environment variables.

        Raises:
            pydantic.ValidationError: if a value is out of range
        """
        env = os.environ if environ is None else environ

        def ms(name: str, default: str) -> float:
            return int(env.get(name, default)) / 1000.0

        return cls.model_validate({
            "simulator": {
                "default_device": env.get("RN_DEFAULT_DEVICE", "iPhone 15 Pro"),
                "default_ios_version": env.get("RN_DEFAULT_IOS_VERSION", "17.0"),
                "timeout": ms("RN_SIMULATOR_TIMEOUT", "30000"),
                "auto_boot_on_create": env.get("RN_AUTO_BOOT") != "false",
            },
            "react_native": {
                "default_bundle_id": env.get("RN_BUNDLE_ID", ""),
            },
            "idb": {
                "timeout": ms("IDB_TIMEOUT", "30000"),
                "retry_attempts": int(env.get("IDB_RETRY_ATTEMPTS", "3")),
                "retry_delay": ms("IDB_RETRY_DELAY", "1000"),
            },
            "artifacts": {
                "screenshot_path": env.get("SCREENSHOT_PATH", ""),
                "video_path": env.get("VIDEO_PATH", ""),
            },
            "headless": {
                "enabled": env.get("HEADLESS_MODE") == "true",
                "mode": env.get("HEADLESS_MODE_TYPE") or "cli-only",
                "display": {
                    "id": env.get("HEADLESS_DISPLAY_ID", ":99"),
                    "resolution": env.get("HEADLESS_RESOLUTION", "1024x768"),
                    "color_depth": int(env.get("HEADLESS_COLOR_DEPTH", "24")),
                },
                "companion": {
                    "port": int(env.get("IDB_COMPANION_PORT", "10880")),
                    "enable_tls": env.get("IDB_COMPANION_TLS") == "true",
                },
            },
            "logging": {
                "level": env.get("LOG_LEVEL", "info").lower(),
                "log_file": env.get("LOG_FILE") or None,
            },
        })
