"""Typed exceptions for hcsolver."""


class SolverError(Exception):
    """Base exception for all hcsolver errors."""


class ModelUnavailable(SolverError):
    """The model provider could not supply a model for a label."""

    def __init__(self, label: str, status: int | None = None):
        self.label = label
        self.status = status
        msg = f"Model {label!r} unavailable"
        if status is not None:
            msg += f" (status {status})"
        super().__init__(msg)


class StaleTarget(SolverError):
    """A previously observed element is no longer attached to the page."""

    def __init__(self, what: str):
        self.what = what
        super().__init__(f"Target {what} is no longer attached")


class MalformedSnapshot(SolverError):
    """Expected structural elements of a challenge are missing."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed challenge snapshot: {reason}")


class LowSignalCapture(SolverError):
    """Captured challenge image is too small to be a real render."""

    def __init__(self, size: int, minimum: int):
        self.size = size
        self.minimum = minimum
        super().__init__(
            f"Captured image is {size} bytes, below the {minimum} byte minimum"
        )


class NoDetections(SolverError):
    """Non-maximum suppression kept no detection boxes."""

    def __init__(self):
        super().__init__("Detector produced no boxes after suppression")


class EngineError(SolverError):
    """The inference engine failed while running a model."""

    def __init__(self, model: str, reason: str):
        self.model = model
        self.reason = reason
        super().__init__(f"Inference failed for {model}: {reason}")
