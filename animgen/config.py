"""Configuration containers for the animation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Dict, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default: float, cast=float):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return cast(default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be numeric, got {raw!r}") from None


@dataclass(slots=True)
class PipelineConfig:
    """Static configuration applied to every pipeline run."""

    env_prefix: ClassVar[str] = "ANIMGEN_"

    output_dir: str = "output"
    frames_dir: Optional[str] = None
    gifs_dir: Optional[str] = None
    runs_dir: str = "runs"
    enable_mock_generation: bool = False
    placeholder_fallback: bool = False
    google_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    stability_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-image"
    analysis_model: str = "gemini-2.5-flash"
    aspect_ratio: str = "1:1"
    api_timeout_sec: float = 30.0
    max_retries: int = 3
    retry_delay_sec: float = 2.0
    request_interval_sec: float = 1.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create a config object populated from environment variables."""
        prefix = cls.env_prefix
        return cls(
            output_dir=os.getenv(f"{prefix}OUTPUT_DIR", "output"),
            frames_dir=os.getenv(f"{prefix}FRAMES_DIR"),
            gifs_dir=os.getenv(f"{prefix}GIFS_DIR"),
            runs_dir=os.getenv(f"{prefix}RUNS_DIR", "runs"),
            enable_mock_generation=_env_bool(f"{prefix}ENABLE_MOCKS", "false"),
            placeholder_fallback=_env_bool(f"{prefix}PLACEHOLDER_FALLBACK", "false"),
            google_api_key=os.getenv("GOOGLE_API_KEY"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            stability_api_key=os.getenv("STABILITY_API_KEY"),
            gemini_model=os.getenv(f"{prefix}GEMINI_MODEL", "gemini-2.5-flash-image"),
            analysis_model=os.getenv(f"{prefix}ANALYSIS_MODEL", "gemini-2.5-flash"),
            aspect_ratio=os.getenv(f"{prefix}ASPECT_RATIO", "1:1"),
            api_timeout_sec=_env_number(f"{prefix}API_TIMEOUT", 30.0),
            max_retries=_env_number(f"{prefix}MAX_RETRIES", 3, int),
            retry_delay_sec=_env_number(f"{prefix}RETRY_DELAY", 2.0),
            request_interval_sec=_env_number(f"{prefix}REQUEST_INTERVAL", 1.0),
            log_level=os.getenv(f"{prefix}LOG_LEVEL", "INFO").upper(),
        )

    @property
    def frames_path(self) -> Path:
        return Path(self.frames_dir) if self.frames_dir else Path(self.output_dir) / "frames"

    @property
    def gifs_path(self) -> Path:
        return Path(self.gifs_dir) if self.gifs_dir else Path(self.output_dir) / "gifs"

    @property
    def reports_path(self) -> Path:
        return Path(self.output_dir) / "reports"

    def key_status(self) -> Dict[str, bool]:
        """Which remote backends have credentials configured."""
        return {
            "gemini": bool(self.google_api_key),
            "openai": bool(self.openai_api_key),
            "stability": bool(self.stability_api_key),
        }
