"""Frame sequence planning, materialization and GIF assembly."""

from .assembler import assemble, assemble_paths, colors_for_quality, select_frames  # noqa: F401
from .classifier import classify  # noqa: F401
from .materializer import CancelToken, FrameMaterializer  # noqa: F401
from .planner import CONSISTENCY_SUFFIX, plan  # noqa: F401
from .settings import get_preset, list_presets, resolve_defaults  # noqa: F401
from .storage import FrameStore  # noqa: F401
