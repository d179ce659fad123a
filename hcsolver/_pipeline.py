"""Per-variant inference orchestration.

Chains model calls for each challenge variant:

- Classify: feature extractor -> label-specific classifier head, per cell
- Multi choice: feature extractor per image (embeddings)
- Bounding box: detector -> NMS

Cells are processed in snapshot (document) order. DOM access stays in the
browser layer; the only hook here is ``is_attached`` for stale-cell checks.
"""

import asyncio
import logging

import numpy as np

from hcsolver._errors import LowSignalCapture, NoDetections, StaleTarget
from hcsolver._image import (
    classifier_tensor,
    detector_tensor,
    encoded_length,
    read_source,
)
from hcsolver._models import DETECTOR, FEATURE_EXTRACTOR, NMS, ModelStore
from hcsolver._postprocess import Detection

logger = logging.getLogger("hcsolver")

# Canvas captures below this are half-rendered frames, not challenges
MIN_CAPTURE_BYTES = 50 * 1024

# [top_k, iou_threshold, score_threshold]
NMS_CONFIG = np.array([1, 0.45, 0.1], dtype=np.float32)


class Pipeline:
    """Runs the model chain for a challenge snapshot.

    Args:
        store: Model cache; its engine runs every inference call.
        fetch: Async ``url -> bytes`` used for non-``data:`` image sources.
    """

    def __init__(self, store: ModelStore, fetch=None):
        self.store = store
        self.fetch = fetch

    @property
    def engine(self):
        return self.store.engine

    async def _load(self, source: str, builder) -> np.ndarray:
        data = await read_source(source, self.fetch)
        return await asyncio.to_thread(builder, data)

    async def _features(self, extractor, source: str) -> np.ndarray:
        tensor = await self._load(source, classifier_tensor)
        outputs = await self.engine.run(extractor, {"input": tensor})
        return outputs[extractor.output_names[0]]

    async def classifier(self, label: str):
        """Classifier head for a prompt label. Raises ModelUnavailable."""
        return await self.store.get(label)

    async def classify(self, snapshot, classifier, is_attached=None):
        """Yield ``(index, scores)`` for each cell, in order.

        Raises StaleTarget before touching a cell that ``is_attached``
        reports as gone; the caller abandons the attempt.
        """
        extractor = await self.store.get(FEATURE_EXTRACTOR)
        for index, (cell, source) in enumerate(
            zip(snapshot.cells, snapshot.sources)
        ):
            if is_attached is not None and not await is_attached(cell):
                raise StaleTarget(f"cell {index}")
            feats = await self._features(extractor, source)
            outputs = await self.engine.run(classifier, {"input": feats})
            scores = np.asarray(outputs[classifier.output_names[0]]).reshape(-1)
            logger.debug("Cell %d scores: %s", index, scores)
            yield index, scores

    async def embed(self, snapshot) -> list[np.ndarray]:
        """One embedding per image; the first is the reference image."""
        extractor = await self.store.get(FEATURE_EXTRACTOR)
        feats = await asyncio.gather(
            *(self._features(extractor, s) for s in snapshot.sources)
        )
        return [np.asarray(f, dtype=np.float32).reshape(-1) for f in feats]

    async def detect(self, snapshot) -> Detection:
        """Run detector + NMS on the snapshot's canvas capture.

        Raises LowSignalCapture for undersized captures (before any model
        is touched) and NoDetections when NMS keeps nothing.
        """
        source = snapshot.sources[0]
        size = encoded_length(source)
        if size < MIN_CAPTURE_BYTES:
            raise LowSignalCapture(size, MIN_CAPTURE_BYTES)

        detector = await self.store.get(DETECTOR)
        nms = await self.store.get(NMS)

        tensor = await self._load(source, detector_tensor)
        outputs = await self.engine.run(detector, {"images": tensor})
        raw = np.asarray(outputs[detector.output_names[0]])

        kept = await self.engine.run(nms, {"detection": raw, "config": NMS_CONFIG})
        selected = np.asarray(kept[nms.output_names[0]]).reshape(-1).astype(np.int64)
        if selected.size == 0:
            raise NoDetections()
        logger.debug("NMS kept %d of %d boxes", selected.size, raw.shape[1])
        return Detection(raw, selected)
