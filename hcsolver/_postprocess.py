"""Turn raw model outputs into UI decisions.

- Classify: select a cell when the classifier's argmax is the positive class
- Multi choice: pick the candidate whose embedding points the same way as
  the reference image's
- Bounding box: take the first box NMS kept and compute its click point
"""

import math
from dataclasses import dataclass

import numpy as np

from hcsolver._geometry import box_centroid, box_corners, rescale_box

POSITIVE_CLASS = 1
MODEL_DIMS = (640, 640)


@dataclass
class Detection:
    """Raw detector output plus the record indices NMS kept."""

    output: np.ndarray  # (1, num_boxes, stride)
    selected: np.ndarray  # (k,) int

    @property
    def stride(self) -> int:
        return int(self.output.shape[2])


def argmax(output) -> int:
    """Index of the first maximum value."""
    return int(np.argmax(np.asarray(output).reshape(-1)))


def is_positive(output) -> bool:
    return argmax(output) == POSITIVE_CLASS


def cosine_similarity(a, b) -> float:
    """Cosine of the angle between two vectors; 0.0 if either is all zeros."""
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    denom = math.sqrt(float(a @ a)) * math.sqrt(float(b @ b))
    if denom == 0:
        return 0.0
    return float(a @ b) / denom


def most_similar(reference, candidates) -> int:
    """Index of the candidate most similar to ``reference``.

    Ties keep the earliest candidate: the incumbent is only replaced on a
    strictly greater similarity.
    """
    if not candidates:
        raise ValueError("No candidates to compare against")
    sims = [cosine_similarity(reference, c) for c in candidates]
    best = 0
    for i, sim in enumerate(sims):
        if sim > sims[best]:
            best = i
    return best


def detection_box(
    detection: Detection, index: int
) -> tuple[float, float, float, float]:
    """Slice one record out of the flattened detector output.

    Returns its first four values, (cx, cy, w, h) in model space.
    """
    stride = detection.stride
    flat = detection.output.reshape(-1)
    record = flat[index * stride:(index + 1) * stride]
    if record.size < 4:
        raise ValueError(f"Detection record {index} out of range")
    x, y, w, h = (float(v) for v in record[:4])
    return x, y, w, h


def click_point(
    detection: Detection,
    display: tuple[float, float],
    model: tuple[float, float] = MODEL_DIMS,
) -> tuple[float, float]:
    """Display-space click point for the first kept detection."""
    index = int(detection.selected[0])
    box = rescale_box(detection_box(detection, index), display, model)
    return box_centroid(box_corners(box))
