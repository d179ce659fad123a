"""Detector box geometry.

Detector boxes are (center_x, center_y, width, height) in letterboxed
model space. ``rescale_box`` undoes the letterbox: subtract the centering
pad on the matching axis, then divide by the resize gain.
"""


def letterbox_gain(
    display: tuple[float, float], model: tuple[float, float] = (640, 640)
) -> float:
    return min(model[0] / display[0], model[1] / display[1])


def letterbox_pad(
    display: tuple[float, float], model: tuple[float, float] = (640, 640)
) -> tuple[float, float]:
    """Horizontal and vertical padding added around the resized image."""
    gain = letterbox_gain(display, model)
    return (
        (model[0] - gain * display[0]) / 2,
        (model[1] - gain * display[1]) / 2,
    )


def letterbox_box(
    box: tuple[float, float, float, float],
    display: tuple[float, float],
    model: tuple[float, float] = (640, 640),
) -> tuple[float, float, float, float]:
    """Map a display-space box into letterboxed model space."""
    gain = letterbox_gain(display, model)
    pad_x, pad_y = letterbox_pad(display, model)
    x, y, w, h = box
    return (x * gain + pad_x, y * gain + pad_y, w * gain, h * gain)


def rescale_box(
    box: tuple[float, float, float, float],
    display: tuple[float, float],
    model: tuple[float, float] = (640, 640),
) -> tuple[float, float, float, float]:
    """Map a letterboxed model-space box back into display space.

    Exact inverse of ``letterbox_box``. Width and height carry no offset,
    only the gain.
    """
    gain = letterbox_gain(display, model)
    pad_x, pad_y = letterbox_pad(display, model)
    x, y, w, h = box
    return ((x - pad_x) / gain, (y - pad_y) / gain, w / gain, h / gain)


def box_corners(
    box: tuple[float, float, float, float],
) -> tuple[float, float, float, float]:
    """(cx, cy, w, h) -> (x1, y1, x2, y2)."""
    x, y, w, h = box
    return (x - w / 2, y - h / 2, x + w / 2, y + h / 2)


def box_centroid(corners: tuple[float, float, float, float]) -> tuple[float, float]:
    x1, y1, x2, y2 = corners
    return ((x1 + x2) / 2, (y1 + y2) / 2)
