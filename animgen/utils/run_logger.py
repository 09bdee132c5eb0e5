"""Per-run step traces kept under ``runs/<run_id>``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .files import ensure_dir, write_json, write_text


@dataclass(slots=True)
class StepLogPaths:
    """Where one pipeline step's input text and output JSON go."""

    prompt_path: Path
    response_path: Path


class RunLogger:
    """Writes the input and output of every pipeline step of a run.

    Nothing touches the disk until the first step of a run is logged.
    """

    def __init__(self, base_dir: str | Path = "runs") -> None:
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def run_dir(self, run_id: str) -> Path:
        """Return (and create) the directory holding one run's traces."""
        return ensure_dir(self._base_dir / run_id)

    def step_paths(self, run_id: str, step_name: str) -> StepLogPaths:
        run_root = self.run_dir(run_id)
        return StepLogPaths(
            prompt_path=run_root / f"{step_name}-prompt.txt",
            response_path=run_root / f"{step_name}-response.json",
        )

    def log_prompt(self, run_id: str, step_name: str, prompt: str) -> None:
        write_text(self.step_paths(run_id, step_name).prompt_path, prompt)

    def log_response(self, run_id: str, step_name: str, response: Any) -> None:
        write_json(self.step_paths(run_id, step_name).response_path, response)
