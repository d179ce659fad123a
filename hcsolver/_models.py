"""ONNX model provisioning and inference.

Models are addressed by logical label:

- ``mobilenetv3``: feature extractor shared by every classifier head
- ``nms``: non-maximum suppression over raw detector output
- ``detector``: bounding-box detector
- anything else: per-target classifier head (e.g. ``bicycle``)

``ModelProvider`` resolves a label to encoded model bytes from a local
directory first, then a HuggingFace Hub repo. ``ModelStore`` turns those
bytes into cached onnxruntime sessions. Failed fetches are not cached so
the next poll tick retries them.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from hcsolver._errors import EngineError, ModelUnavailable

logger = logging.getLogger("hcsolver")

FEATURE_EXTRACTOR = "mobilenetv3"
NMS = "nms"
DETECTOR = "detector"

_EXTENSIONS = (".onnx", ".ort")


@dataclass
class ModelFetch:
    """Result of asking the provider for a label."""

    status: int
    payload: bytes | None = None

    @property
    def ok(self) -> bool:
        return self.status == 200 and bool(self.payload)


class ModelProvider:
    """Supplies encoded model payloads by label.

    Looks in ``models_dir`` (``HCSOLVER_MODEL_DIR``) for ``<label>.onnx``
    or ``<label>.ort``, then downloads ``<label>.onnx`` from ``repo_id``
    (``HCSOLVER_MODEL_REPO``) via huggingface_hub.
    """

    def __init__(
        self,
        models_dir: str | os.PathLike | None = None,
        repo_id: str | None = None,
    ):
        models_dir = models_dir or os.environ.get("HCSOLVER_MODEL_DIR")
        self.models_dir = Path(models_dir) if models_dir else None
        self.repo_id = repo_id or os.environ.get("HCSOLVER_MODEL_REPO") or None

    def _local_path(self, label: str) -> Path | None:
        if self.models_dir is None:
            return None
        for ext in _EXTENSIONS:
            path = self.models_dir / f"{label}{ext}"
            if path.is_file():
                return path
        return None

    def _download(self, label: str) -> ModelFetch:
        try:
            from huggingface_hub import hf_hub_download
        except ImportError:
            logger.debug("huggingface_hub not installed, cannot fetch %s", label)
            return ModelFetch(501)

        try:
            path = hf_hub_download(self.repo_id, f"{label}.onnx")
        except Exception as exc:
            response = getattr(exc, "response", None)
            status = getattr(response, "status_code", None) or 503
            logger.debug(
                "Model %s not downloadable from %s (%s)",
                label, self.repo_id, status,
            )
            return ModelFetch(status)
        return ModelFetch(200, Path(path).read_bytes())

    async def fetch(self, label: str) -> ModelFetch:
        """Fetch a model payload. Never raises; failures are statuses."""
        path = self._local_path(label)
        if path is not None:
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError:
                logger.debug("Could not read %s", path, exc_info=True)
                return ModelFetch(500)
            return ModelFetch(200, data)
        if self.repo_id:
            return await asyncio.to_thread(self._download, label)
        return ModelFetch(404)


@dataclass
class Model:
    """A loaded model: label plus its inference session."""

    label: str
    session: object

    @property
    def output_names(self) -> list[str]:
        return [o.name for o in self.session.get_outputs()]


class InferenceEngine:
    """Runs onnxruntime sessions off the event loop.

    Calls are serialized: the solver processes one challenge at a time and
    the sessions share a small thread budget.
    """

    def __init__(self, inter_op_threads: int = 1, intra_op_threads: int = 2):
        self.inter_op_threads = inter_op_threads
        self.intra_op_threads = intra_op_threads
        self._lock = asyncio.Lock()

    def load(self, label: str, payload: bytes) -> Model:
        """Build an inference session from encoded model bytes."""
        import onnxruntime as ort

        opts = ort.SessionOptions()
        opts.inter_op_num_threads = self.inter_op_threads
        opts.intra_op_num_threads = self.intra_op_threads
        try:
            session = ort.InferenceSession(
                payload, opts, providers=["CPUExecutionProvider"]
            )
        except Exception as exc:
            raise EngineError(label, str(exc)) from exc
        return Model(label, session)

    async def run(self, model: Model, feeds: dict) -> dict:
        """Run ``model`` on named input tensors, return named outputs."""
        async with self._lock:
            try:
                outputs = await asyncio.to_thread(
                    model.session.run, None, feeds
                )
            except Exception as exc:
                raise EngineError(model.label, str(exc)) from exc
        return dict(zip(model.output_names, outputs))


class ModelStore:
    """Label -> loaded model cache in front of a provider."""

    def __init__(
        self,
        provider: ModelProvider | None = None,
        engine: InferenceEngine | None = None,
    ):
        self.provider = provider or ModelProvider()
        self.engine = engine or InferenceEngine()
        self._models: dict[str, Model] = {}
        self._lock = asyncio.Lock()

    async def get(self, label: str) -> Model:
        """Return the model for ``label``, loading it on first use.

        Raises ModelUnavailable when the provider has nothing for it.
        """
        model = self._models.get(label)
        if model is not None:
            return model

        async with self._lock:
            model = self._models.get(label)
            if model is not None:
                return model

            fetched = await self.provider.fetch(label)
            if not fetched.ok:
                logger.info(
                    "Error getting model %r (status %s)", label, fetched.status
                )
                raise ModelUnavailable(label, fetched.status)

            model = await asyncio.to_thread(
                self.engine.load, label, fetched.payload
            )
            self._models[label] = model
            logger.info("ONNX model loaded: %s", label)
            return model
