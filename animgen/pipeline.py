"""Pipeline orchestration for the animated GIF generator."""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import asdict, fields, is_dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, TypedDict

from langchain_core.runnables import RunnableLambda
from langgraph.graph import END, START, StateGraph

from .config import PipelineConfig
from .errors import EmptySequenceError, InvalidRequestError
from .nodes.assemble import AssembleAnimation, CleanupFrames, ReportNode
from .nodes.base import Node
from .nodes.frames import MaterializeFrames
from .nodes.planning import ClassifyMotion, PlanFrames
from .sequence.assembler import assemble_paths
from .sequence.materializer import CancelToken, FrameMaterializer
from .sequence.settings import resolve_defaults
from .sequence.storage import FrameStore
from .services.base import ImageBackend
from .services.factory import build_backend
from .services.placeholder import PlaceholderImageBackend
from .types import (
    MAX_DELAY_MS,
    MAX_QUALITY,
    MIN_DELAY_MS,
    MIN_QUALITY,
    AnimationRequest,
    MotionCategory,
    RunState,
    SequenceResult,
)
from .utils.run_logger import RunLogger

logger = logging.getLogger(__name__)

_BLOCKING_NODES = {"MaterializeFrames", "AssembleAnimation"}


class _GraphState(TypedDict):
    run: RunState


class AnimatedGifGenerator:
    """High-level facade exposing the end-to-end generation flow."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        backend: ImageBackend | None = None,
        store: FrameStore | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or PipelineConfig.from_env()
        self.logger = RunLogger(base_dir=self.config.runs_dir)
        self.store = store or FrameStore(self.config.frames_path)
        self._backend = backend
        self.materializer = FrameMaterializer(
            self.store,
            max_retries=self.config.max_retries,
            request_interval_sec=self.config.request_interval_sec,
            retry_delay_sec=self.config.retry_delay_sec,
            sleep=sleep,
        )

    @property
    def backend(self) -> ImageBackend:
        """Backend chain, built from the config on first use."""
        if self._backend is None:
            self._backend = build_backend(self.config)
        return self._backend

    def run(self, request: AnimationRequest, *, cancel_token: Optional[CancelToken] = None) -> SequenceResult:
        """Execute the pipeline and return the run result.

        Raises :class:`InvalidRequestError` before any side effect, and
        :class:`EmptySequenceError` (carrying ``.result``) when no frame
        could be encoded. A :class:`StorageError` writing the animation is
        raised after the run report is written.
        """
        request.validate()
        request = self.with_defaults(request)
        backend = self.backend

        run_id = self._new_run_id()
        token = cancel_token or CancelToken()
        logger.info(
            "Starting run %s: %r (%d frames, backend=%s)",
            run_id,
            request.base_prompt,
            request.frame_count,
            backend.name,
        )

        nodes = self._build_nodes(run_id=run_id, request=request, backend=backend, cancel_token=token)
        app = self._build_graph(nodes).compile()
        final = app.invoke({"run": RunState(run_id=run_id, request=request)})
        state: RunState = final["run"]

        result = state.to_result()
        if isinstance(state.error, EmptySequenceError):
            state.error.result = result
        if state.error is not None:
            raise state.error
        logger.info("Run %s finished: %s", run_id, result.summary())
        return result

    def run_many(
        self,
        request: AnimationRequest,
        categories: Iterable[MotionCategory | str],
        *,
        cancel_token: Optional[CancelToken] = None,
    ) -> List[SequenceResult]:
        """Run the same prompt once per category, one after another."""
        token = cancel_token or CancelToken()
        results: List[SequenceResult] = []
        for category in categories:
            if token.cancelled:
                break
            variant = replace(request, motion_category=category)
            try:
                results.append(self.run(variant, cancel_token=token))
            except EmptySequenceError as exc:
                logger.error("Category %s produced no animation: %s", category, exc)
                if exc.result is not None:
                    results.append(exc.result)
        return results

    def assemble_from_frames(
        self,
        paths: Sequence[str | Path],
        output_path: str | Path,
        *,
        width: int = 512,
        height: int = 512,
        delay_ms: Optional[int] = None,
        quality: Optional[int] = None,
        loop: Optional[int] = 0,
    ) -> Path:
        """Encode existing image files into one animation."""
        defaults = resolve_defaults(max(len(paths), 1))
        delay_ms = defaults.delay_ms if delay_ms is None else delay_ms
        quality = defaults.quality if quality is None else quality

        errors: List[str] = []
        if not MIN_DELAY_MS <= delay_ms <= MAX_DELAY_MS:
            errors.append(f"Delay must be between {MIN_DELAY_MS}ms and {MAX_DELAY_MS}ms, got {delay_ms!r}")
        if not MIN_QUALITY <= quality <= MAX_QUALITY:
            errors.append(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality!r}")
        if width <= 0 or height <= 0:
            errors.append(f"Size must be positive, got {width}x{height}")
        errors.extend(f"Frame not found: {path}" for path in paths if not Path(path).is_file())
        if errors:
            raise InvalidRequestError(errors)

        return assemble_paths(
            paths,
            width=width,
            height=height,
            delay_ms=delay_ms,
            quality=quality,
            loop=loop,
            output_path=output_path,
            store=self.store,
        )

    @staticmethod
    def with_defaults(request: AnimationRequest) -> AnimationRequest:
        """Fill an unset delay or quality from the frame-count buckets."""
        if request.delay_ms is not None and request.quality is not None:
            return request
        defaults = resolve_defaults(request.frame_count)
        return replace(
            request,
            delay_ms=defaults.delay_ms if request.delay_ms is None else request.delay_ms,
            quality=defaults.quality if request.quality is None else request.quality,
        )

    def _build_graph(self, nodes: Sequence[Node]) -> StateGraph:
        """Construct a LangGraph graph wired with runnable nodes."""
        if not nodes:
            raise RuntimeError("Pipeline has no nodes configured.")

        graph = StateGraph(_GraphState)
        node_names: List[str] = []
        for node in nodes:
            graph.add_node(
                node.name,
                RunnableLambda(lambda payload, _node=node: {"run": self._invoke_node(_node, payload["run"])}),
                metadata={"kind": node.name, "may_block": node.name in _BLOCKING_NODES},
            )
            node_names.append(node.name)

        graph.add_edge(START, node_names[0])
        for previous, current in zip(node_names, node_names[1:]):
            if previous == "MaterializeFrames":
                continue
            graph.add_edge(previous, current)
        graph.add_edge(node_names[-1], END)
        graph.add_conditional_edges(
            "MaterializeFrames",
            self._route_after_frames,
            {"assemble": "AssembleAnimation", "report": "Report"},
        )
        return graph

    @staticmethod
    def _route_after_frames(payload: _GraphState) -> str:
        """Cancelled runs keep their frames and go straight to the report."""
        return "report" if payload["run"].cancelled else "assemble"

    def _build_nodes(
        self,
        *,
        run_id: str,
        request: AnimationRequest,
        backend: ImageBackend,
        cancel_token: CancelToken,
    ) -> Sequence[Node]:
        """Construct node instances wired with the current services."""
        return [
            ClassifyMotion(run_id=run_id, logger=self.logger),
            PlanFrames(run_id=run_id, logger=self.logger),
            MaterializeFrames(
                run_id=run_id,
                logger=self.logger,
                backend=backend,
                materializer=self.materializer,
                cancel_token=cancel_token,
            ),
            AssembleAnimation(
                run_id=run_id,
                logger=self.logger,
                store=self.store,
                output_dir=self.config.gifs_path,
                placeholder_backend=PlaceholderImageBackend(width=request.width, height=request.height),
            ),
            CleanupFrames(run_id=run_id, logger=self.logger, store=self.store),
            ReportNode(
                run_id=run_id,
                logger=self.logger,
                output_dir=self.config.reports_path,
                backend_name=backend.name,
            ),
        ]

    def _invoke_node(self, node: Node, state: RunState) -> RunState:
        """Execute a node while emitting structured IO traces."""
        self._log_step_io(node.name, "input", state)

        started = time.perf_counter()
        updated_state = node.run(state)
        elapsed = time.perf_counter() - started

        self._log_step_io(node.name, "output", updated_state, elapsed)
        return updated_state

    def _snapshot_state(self, state: RunState | Any) -> Any:
        """Return a compact serialisable view of the state for logging."""
        if is_dataclass(state):
            raw = {item.name: getattr(state, item.name) for item in fields(state)}
        else:
            raw = state
        return self._strip_empty(raw)

    def _strip_empty(self, value: Any) -> Any:
        """Recursively remove empty containers for cleaner logging."""
        if isinstance(value, dict):
            return {k: self._strip_empty(v) for k, v in value.items() if not self._is_empty(v)}
        if isinstance(value, (list, tuple)):
            return [self._strip_empty(item) for item in value if not self._is_empty(item)]
        return value

    @staticmethod
    def _is_empty(value: Any) -> bool:
        """Return True if the provided value is considered empty for logging."""
        if value is None:
            return True
        if isinstance(value, (str, bytes)) and value == "":
            return True
        if isinstance(value, (list, tuple, set, dict)) and len(value) == 0:
            return True
        return False

    def _log_step_io(self, step: str, direction: str, state: RunState, elapsed: float | None = None) -> None:
        """Log the input/output state of each step at DEBUG level."""
        if not logger.isEnabledFor(logging.DEBUG):
            return
        prefix = ">>" if direction == "input" else "<<"
        timing = f" [{elapsed:.2f}s]" if elapsed is not None else ""
        body = json.dumps(self._snapshot_state(state), ensure_ascii=False, indent=2, default=self._json_default)
        logger.debug("[%s] %s %s%s:\n%s", step, prefix, direction, timing, body)

    @staticmethod
    def _json_default(obj: Any) -> Any:
        """Fallback serializer for non-JSON compatible objects."""
        if is_dataclass(obj):
            return asdict(obj)
        if isinstance(obj, set):
            return list(obj)
        return str(obj)

    @staticmethod
    def _new_run_id() -> str:
        """Return a timestamped run identifier that stays unique within one second."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return f"{stamp}-{uuid.uuid4().hex[:6]}"
