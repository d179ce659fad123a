"""hcsolver -- hCaptcha image challenge solver built on ONNX models."""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("hcsolver")
except PackageNotFoundError:
    __version__ = "0.0.0"

from hcsolver._challenge import ChallengeSnapshot, ChallengeVariant, PollState
from hcsolver._errors import (
    EngineError,
    LowSignalCapture,
    MalformedSnapshot,
    ModelUnavailable,
    NoDetections,
    SolverError,
    StaleTarget,
)
from hcsolver._geometry import rescale_box
from hcsolver._image import letterbox, to_tensor
from hcsolver._models import InferenceEngine, ModelProvider, ModelStore
from hcsolver._pipeline import Pipeline
from hcsolver._postprocess import cosine_similarity, most_similar
from hcsolver._settings import Settings
from hcsolver._text import normalize, parse_label

__all__ = [
    "__version__",
    "Settings",
    "ChallengeVariant",
    "ChallengeSnapshot",
    "PollState",
    "ModelProvider",
    "ModelStore",
    "InferenceEngine",
    "Pipeline",
    "SolverError",
    "ModelUnavailable",
    "StaleTarget",
    "MalformedSnapshot",
    "LowSignalCapture",
    "NoDetections",
    "EngineError",
    "normalize",
    "parse_label",
    "letterbox",
    "to_tensor",
    "rescale_box",
    "cosine_similarity",
    "most_similar",
]

# Silent by default; callers opt in via logging.getLogger("hcsolver").setLevel(...)
logging.getLogger("hcsolver").addHandler(logging.NullHandler())
