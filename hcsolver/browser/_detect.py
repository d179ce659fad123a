"""Challenge readiness polling.

``ChallengeWatcher.check`` samples the challenge frame once and returns a
snapshot only when a complete, not-yet-seen challenge is showing.
``wait`` repeats that on a fixed interval for a bounded number of polls.
"""

import asyncio
import logging

from hcsolver._challenge import (
    VARIANT_MARKERS,
    ChallengeSnapshot,
    ChallengeVariant,
    PollState,
    detect_variant,
)
from hcsolver._errors import MalformedSnapshot
from hcsolver.browser._dom import (
    CANVAS,
    CELL_IMAGE,
    CELLS,
    canvas_jpeg,
    image_url,
    is_image_frame,
    read_prompt,
)

logger = logging.getLogger("hcsolver")

POLL_INTERVAL = 0.5
WAIT_ATTEMPTS = 4


class ChallengeWatcher:
    """Samples a challenge frame for new challenges.

    Args:
        frame: patchright Frame hosting the challenge view.
        state: Dedup state; pass the same instance across attempts.
        interval: Seconds between samples in ``wait``.
    """

    def __init__(
        self,
        frame,
        state: PollState | None = None,
        interval: float = POLL_INTERVAL,
    ):
        self.frame = frame
        self.state = state if state is not None else PollState()
        self.interval = interval
        self._checking = False

    async def check(self) -> ChallengeSnapshot | None:
        """One polling tick. Skipped (None) if a tick is already in flight."""
        if self._checking:
            logger.debug("Previous check still in flight, skipping tick")
            return None
        self._checking = True
        try:
            return await self._sample()
        finally:
            self._checking = False

    async def _sample(self) -> ChallengeSnapshot | None:
        prompt = await read_prompt(self.frame)
        if not prompt:
            return None

        present = set()
        for selector, _ in VARIANT_MARKERS:
            if await self.frame.query_selector(selector) is not None:
                present.add(selector)
        variant = detect_variant(present)

        cells = []
        sources = []
        if variant in (ChallengeVariant.CLASSIFY, ChallengeVariant.MULTI_CHOICE):
            elements = await self.frame.query_selector_all(CELLS)
            if not elements:
                return None
            for el in elements:
                img = await el.query_selector(CELL_IMAGE)
                if img is None:
                    return None
                url = await image_url(img)
                if not url:
                    return None
                cells.append(el)
                sources.append(url)
        elif variant is ChallengeVariant.BOUNDING_BOX:
            canvas = await self.frame.query_selector(CANVAS)
            if canvas is None:
                return None
            cells.append(canvas)
            sources.append(await canvas_jpeg(canvas))

        snapshot = ChallengeSnapshot(
            variant, prompt, tuple(cells), tuple(sources)
        )
        if not self.state.accept(snapshot):
            return None
        logger.debug(
            "Challenge ready: %s, %d images, prompt=%r",
            variant.value, len(sources), prompt,
        )
        return snapshot

    async def wait(self, attempts: int = WAIT_ATTEMPTS) -> ChallengeSnapshot | None:
        """Poll up to ``attempts`` times for a new challenge.

        Returns None when nothing new shows up, or as soon as the challenge
        view stops showing, so the caller's tick can move on.
        """
        for attempt in range(attempts):
            if self.frame.is_detached():
                raise MalformedSnapshot("challenge frame detached")
            if not await is_image_frame(self.frame):
                logger.debug("Challenge view no longer showing")
                return None
            snapshot = await self.check()
            if snapshot is not None:
                return snapshot
            if attempt + 1 < attempts:
                await asyncio.sleep(self.interval)
        return None
