"""Image decoding and tensor preprocessing.

Classifier and embedding models take a normalized 224x224 NCHW tensor.
The detector takes an un-normalized 640x640 letterboxed NCHW tensor.
"""

import base64
import io
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

logger = logging.getLogger("hcsolver")

# ImageNet statistics, RGB order
MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)

CLASSIFIER_SIZE = 224
DETECTOR_SIZE = 640
PAD_COLOR = (114, 114, 114)


@dataclass
class Letterboxed:
    """A letterboxed canvas plus the transform that produced it."""

    image: Image.Image
    scale: float
    pad_x: int
    pad_y: int


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def is_data_url(source: str) -> bool:
    return source.startswith("data:")


def encoded_payload(source: str) -> str:
    """Return the base64 body of a ``data:`` URL."""
    _, _, body = source.partition(",")
    return body


def encoded_length(source: str | bytes) -> int:
    """Size of the encoded image as captured (base64 text for data URLs)."""
    if isinstance(source, bytes):
        return len(source)
    if is_data_url(source):
        return len(encoded_payload(source))
    return len(source)


def decode_data_url(source: str) -> bytes:
    return base64.b64decode(encoded_payload(source))


async def read_source(source: str, fetch=None) -> bytes:
    """Resolve an image source to encoded image bytes.

    ``data:`` URLs are decoded locally; anything else is handed to
    ``fetch`` (an async ``url -> bytes`` callable, usually backed by the
    page's request context).
    """
    if is_data_url(source):
        return decode_data_url(source)
    if fetch is None:
        raise ValueError(f"No fetcher available for {source[:64]!r}")
    return await fetch(source)


def decode(data: bytes) -> Image.Image:
    """Decode encoded image bytes into an RGB image (alpha dropped)."""
    img = Image.open(io.BytesIO(data))
    return img.convert("RGB")


# ---------------------------------------------------------------------------
# Geometry-preserving resize
# ---------------------------------------------------------------------------


def letterbox(
    image: Image.Image,
    width: int = DETECTOR_SIZE,
    height: int = DETECTOR_SIZE,
) -> Letterboxed:
    """Resize preserving aspect ratio and center on a gray canvas."""
    iw, ih = image.size
    scale = min(width / iw, height / ih)
    nw, nh = max(1, int(iw * scale)), max(1, int(ih * scale))
    pad_x, pad_y = (width - nw) // 2, (height - nh) // 2

    resized = image.convert("RGB").resize((nw, nh), Image.BICUBIC)
    canvas = Image.new("RGB", (width, height), PAD_COLOR)
    canvas.paste(resized, (pad_x, pad_y))
    return Letterboxed(canvas, scale, pad_x, pad_y)


# ---------------------------------------------------------------------------
# Tensors
# ---------------------------------------------------------------------------


def to_tensor(
    image: Image.Image,
    shape: tuple[int, int, int, int] | None = None,
    normalize: bool = True,
) -> np.ndarray:
    """Convert an image to a float32 (1, 3, H, W) tensor.

    Pixels are scaled to [0, 1]; with ``normalize`` the ImageNet mean/std
    are then indexed by flat position modulo 3 over the channel-major
    buffer, not by channel; the classifier heads expect exactly this.
    Alpha is discarded.
    """
    arr = np.asarray(image.convert("RGBA"), dtype=np.float32)[:, :, :3]
    chw = arr.transpose(2, 0, 1) / 255.0  # HWC -> CHW
    flat = chw.reshape(-1)
    if normalize:
        idx = np.arange(flat.size) % 3
        flat = (flat - MEAN[idx]) / STD[idx]
    tensor = np.ascontiguousarray(
        flat.reshape((1,) + chw.shape), dtype=np.float32
    )

    if shape is not None:
        expected = int(np.prod(shape))
        if tensor.size != expected or tensor.shape != tuple(shape):
            raise ValueError(
                f"Tensor shape {tensor.shape} does not match {tuple(shape)}"
            )
    return tensor


def classifier_tensor(data: bytes, size: int = CLASSIFIER_SIZE) -> np.ndarray:
    """Decode, bilinear-resize and normalize one challenge image."""
    img = decode(data).resize((size, size), Image.BILINEAR)
    return to_tensor(img, (1, 3, size, size))


def detector_tensor(data: bytes, size: int = DETECTOR_SIZE) -> np.ndarray:
    """Decode, letterbox and tensorize a canvas capture (not normalized)."""
    boxed = letterbox(decode(data), size, size)
    logger.debug(
        "Letterboxed canvas: scale=%.4f pad=(%d, %d)",
        boxed.scale, boxed.pad_x, boxed.pad_y,
    )
    return to_tensor(boxed.image, (1, 3, size, size), normalize=False)
