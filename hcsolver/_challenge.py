"""Challenge variant detection and snapshot dedup.

Pure logic, no I/O. The browser layer samples the challenge frame and
hands the results here to decide which variant is showing and whether
the challenge changed since the last tick.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from hcsolver._errors import MalformedSnapshot

logger = logging.getLogger("hcsolver")


class ChallengeVariant(enum.Enum):
    """Challenge layouts that hcsolver knows how to solve."""

    CLASSIFY = "classify"
    MULTI_CHOICE = "multi_choice"
    BOUNDING_BOX = "bounding_box"
    UNKNOWN = "unknown"


# Structural marker (direct child of .challenge-view) -> variant.
# Checked in order; the first present marker wins.
VARIANT_MARKERS: tuple[tuple[str, ChallengeVariant], ...] = (
    (".challenge-view > .task-grid", ChallengeVariant.CLASSIFY),
    (".challenge-view > .task-wrapper", ChallengeVariant.MULTI_CHOICE),
    (".challenge-view > .bounding-box-example", ChallengeVariant.BOUNDING_BOX),
)


def detect_variant(present: set[str]) -> ChallengeVariant:
    """Map the set of marker selectors found in the frame to a variant."""
    for selector, variant in VARIANT_MARKERS:
        if selector in present:
            return variant
    return ChallengeVariant.UNKNOWN


def fingerprint(sources: list[str]) -> str:
    """Serialize the ordered image sources for change detection."""
    return json.dumps(list(sources))


@dataclass(frozen=True)
class ChallengeSnapshot:
    """One observed challenge, consumed by a single solve attempt.

    ``cells`` are opaque element handles index-aligned with ``sources``
    (image URLs or ``data:`` URLs).
    """

    variant: ChallengeVariant
    instruction: str
    cells: tuple[Any, ...] = ()
    sources: tuple[str, ...] = ()
    fingerprint: str = field(default="", compare=False)

    def __post_init__(self):
        if len(self.cells) != len(self.sources):
            raise MalformedSnapshot(
                f"{len(self.cells)} cells for {len(self.sources)} images"
            )
        if self.variant is ChallengeVariant.BOUNDING_BOX and len(self.cells) != 1:
            raise MalformedSnapshot(
                f"bounding box challenge with {len(self.cells)} canvases"
            )
        if not self.fingerprint:
            object.__setattr__(self, "fingerprint", fingerprint(self.sources))

    @property
    def anchor(self):
        """First cell; used to tell whether the challenge is still mounted."""
        return self.cells[0] if self.cells else None


class PollState:
    """Last-seen challenge fingerprint, owned by a single watcher.

    Only the watcher's polling task reads and writes it, one tick at a
    time, so it needs no lock.
    """

    def __init__(self):
        self.last_fingerprint: str | None = None

    def accept(self, snapshot: ChallengeSnapshot) -> bool:
        """Record ``snapshot`` and report whether it should be solved.

        Bounding-box canvases are always re-solved: the canvas can be
        redrawn without the fingerprint changing in a way we can observe.
        """
        if (
            snapshot.fingerprint == self.last_fingerprint
            and snapshot.variant is not ChallengeVariant.BOUNDING_BOX
        ):
            logger.debug("Challenge unchanged, skipping")
            return False
        self.last_fingerprint = snapshot.fingerprint
        return True

    def forget(self) -> None:
        """Make the current challenge eligible again on the next check."""
        self.last_fingerprint = None
