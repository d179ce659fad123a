"""hCaptcha image challenge solver.

Drives one solve attempt per detected challenge:

1. Widget frame showing and unsolved -> open the challenge
2. Challenge frame showing -> poll briefly for a new challenge snapshot
3. Run the model chain for its variant and act on the decision
4. Submit, refresh, or do nothing until the next tick

Every failure inside an attempt degrades to "no action this tick"; the
run loop itself never exits on an attempt's error.
"""

import asyncio
import enum
import inspect
import logging

from hcsolver._challenge import ChallengeVariant, PollState
from hcsolver._errors import (
    LowSignalCapture,
    MalformedSnapshot,
    ModelUnavailable,
    NoDetections,
    StaleTarget,
)
from hcsolver._models import ModelStore
from hcsolver._pipeline import Pipeline
from hcsolver._postprocess import click_point, is_positive, most_similar
from hcsolver._settings import Settings
from hcsolver._text import parse_label
from hcsolver.browser._detect import POLL_INTERVAL, ChallengeWatcher
from hcsolver.browser._dom import (
    ANCHOR,
    ENGLISH_OPTION,
    LANGUAGE_TEXT,
    REFRESH,
    SUBMIT,
    client_rect,
    find_frame,
    is_attached,
    is_image_frame,
    is_selected,
    is_solved,
    is_widget_frame,
)
from hcsolver.browser._interact import simulate_click

logger = logging.getLogger("hcsolver")

TICK_INTERVAL = 1.0
OPEN_DELAY = 0.5
REFRESH_SETTLE = 0.25
LANGUAGE_SETTLE = 0.5


class Outcome(enum.Enum):
    """What a single tick did."""

    IDLE = "idle"
    OPENED = "opened"
    SUBMITTED = "submitted"
    REFRESHED = "refreshed"
    SKIPPED = "skipped"


class HCaptchaSolver:
    """Solves hCaptcha challenges on a patchright page.

    Args:
        page: patchright async Page hosting the hCaptcha widget.
        settings: A ``Settings`` instance, or a zero-argument callable
            (sync or async) returning ``Settings`` or a flat mapping.
            Read once per tick. Defaults to ``Settings.from_env``.
        store: Model cache. Defaults to env-configured ``ModelStore()``.
        pipeline: Model chain. Defaults to one built on ``store`` that
            fetches remote images through the page's request context.
        state: Challenge dedup state shared across attempts.
    """

    def __init__(
        self,
        page,
        settings=None,
        store: ModelStore | None = None,
        pipeline: Pipeline | None = None,
        state: PollState | None = None,
        poll_interval: float = POLL_INTERVAL,
        tick_interval: float = TICK_INTERVAL,
    ):
        self.page = page
        self._settings = settings if settings is not None else Settings.from_env
        self.store = store or ModelStore()
        self.pipeline = pipeline or Pipeline(self.store, fetch=self._fetch)
        self.state = state if state is not None else PollState()
        self.poll_interval = poll_interval
        self.tick_interval = tick_interval
        self._watcher: ChallengeWatcher | None = None

    async def _fetch(self, url: str) -> bytes:
        resp = await self.page.request.get(url)
        if resp.status != 200:
            raise MalformedSnapshot(f"image fetch returned HTTP {resp.status}")
        return await resp.body()

    async def load_settings(self) -> Settings:
        source = self._settings
        if isinstance(source, Settings):
            return source
        value = source()
        if inspect.isawaitable(value):
            value = await value
        if isinstance(value, Settings):
            return value
        return Settings.from_mapping(value)

    def _watcher_for(self, frame) -> ChallengeWatcher:
        if self._watcher is None or self._watcher.frame is not frame:
            self._watcher = ChallengeWatcher(
                frame, self.state, self.poll_interval
            )
        return self._watcher

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Tick forever. Cancel the task to stop."""
        logger.info("hCaptcha solver running")
        while True:
            await asyncio.sleep(self.tick_interval)
            try:
                await self.tick()
            except Exception:
                logger.warning("Solver tick failed", exc_info=True)

    async def tick(self) -> Outcome:
        """Check both frames once and act on whichever is ready."""
        settings = await self.load_settings()

        challenge = find_frame(self.page, "frame=challenge")
        if (
            settings.auto_solve
            and challenge is not None
            and await is_image_frame(challenge)
        ):
            return await self.solve(challenge, settings)

        checkbox = find_frame(self.page, "frame=checkbox")
        if (
            settings.auto_open
            and checkbox is not None
            and await is_widget_frame(checkbox)
        ):
            return await self.open_widget(checkbox)

        return Outcome.IDLE

    # ------------------------------------------------------------------
    # Widget
    # ------------------------------------------------------------------

    async def open_widget(self, frame) -> Outcome:
        if await is_solved(frame):
            return Outcome.IDLE
        await asyncio.sleep(OPEN_DELAY)
        anchor = await frame.query_selector(ANCHOR)
        if anchor is None or not await simulate_click(anchor):
            return Outcome.IDLE
        logger.info("Opened hCaptcha challenge")
        return Outcome.OPENED

    # ------------------------------------------------------------------
    # Challenge
    # ------------------------------------------------------------------

    async def ensure_english(self, frame) -> None:
        """Switch the challenge UI to English; prompts are parsed as English."""
        current = await frame.query_selector(LANGUAGE_TEXT)
        if current is None or await current.text_content() == "EN":
            return
        option = await frame.query_selector(ENGLISH_OPTION)
        if option is not None:
            await simulate_click(option)
            await asyncio.sleep(LANGUAGE_SETTLE)

    async def submit(self, frame) -> bool:
        button = await frame.query_selector(SUBMIT)
        if button is None:
            logger.debug("Submit button missing")
            return False
        return await simulate_click(button)

    async def refresh(self, frame) -> bool:
        button = await frame.query_selector(REFRESH)
        if button is None or not await is_attached(button):
            return False
        await simulate_click(button)
        await asyncio.sleep(REFRESH_SETTLE)
        return True

    async def _refresh_or_retry(self, frame) -> Outcome:
        if await self.refresh(frame):
            return Outcome.REFRESHED
        # Same challenge stays up; let the next tick attempt it again
        self.state.forget()
        return Outcome.SKIPPED

    async def solve(self, frame, settings: Settings) -> Outcome:
        """One solve attempt on the challenge frame."""
        try:
            await self.ensure_english(frame)
            snapshot = await self._watcher_for(frame).wait()
            if snapshot is None:
                return Outcome.IDLE
            logger.info(
                "hCaptcha %s challenge: %r (%d images)",
                snapshot.variant.value, snapshot.instruction,
                len(snapshot.sources),
            )
            return await self._dispatch(frame, snapshot, settings)
        except ModelUnavailable as exc:
            logger.info("%s, refreshing", exc)
            return await self._refresh_or_retry(frame)
        except NoDetections:
            logger.info("No detections, refreshing")
            return await self._refresh_or_retry(frame)
        except (StaleTarget, MalformedSnapshot, LowSignalCapture) as exc:
            logger.debug("Attempt abandoned: %s", exc)
            return Outcome.SKIPPED
        except Exception:
            logger.warning("hCaptcha solve attempt failed", exc_info=True)
            return Outcome.SKIPPED

    async def _dispatch(self, frame, snapshot, settings: Settings) -> Outcome:
        variant = snapshot.variant
        if variant is ChallengeVariant.CLASSIFY:
            return await self._solve_classify(frame, snapshot, settings)
        elif variant is ChallengeVariant.MULTI_CHOICE:
            return await self._solve_multi_choice(frame, snapshot, settings)
        elif variant is ChallengeVariant.BOUNDING_BOX:
            return await self._solve_bounding_box(frame, snapshot, settings)
        logger.info("Unrecognized challenge layout, refreshing")
        return await self._refresh_or_retry(frame)

    async def _solve_classify(self, frame, snapshot, settings) -> Outcome:
        label = parse_label(snapshot.instruction)
        classifier = await self.pipeline.classifier(label)

        clicked = []
        async for index, scores in self.pipeline.classify(
            snapshot, classifier, is_attached=is_attached,
        ):
            cell = snapshot.cells[index]
            if is_positive(scores) and not await is_selected(cell):
                await asyncio.sleep(settings.click_delay)
                await simulate_click(cell)
                clicked.append(index)

        logger.info("Classify %r: selected cells %s", label, clicked)
        if not await is_attached(snapshot.anchor):
            raise StaleTarget("anchor cell")
        await asyncio.sleep(settings.solve_delay)
        await self.submit(frame)
        return Outcome.SUBMITTED

    async def _solve_multi_choice(self, frame, snapshot, settings) -> Outcome:
        embeddings = await self.pipeline.embed(snapshot)
        if len(embeddings) < 2:
            raise MalformedSnapshot("multi choice without answer images")

        best = most_similar(embeddings[0], embeddings[1:])
        cell = snapshot.cells[best + 1]
        logger.info("Multi choice: answer %d is most similar", best)
        if not await is_attached(cell) or await is_selected(cell):
            return Outcome.SKIPPED

        await asyncio.sleep(settings.click_delay)
        await simulate_click(cell)
        await asyncio.sleep(settings.solve_delay)
        await self.submit(frame)
        return Outcome.SUBMITTED

    async def _solve_bounding_box(self, frame, snapshot, settings) -> Outcome:
        canvas = snapshot.anchor
        left, top, width, height = await client_rect(canvas)
        if not width or not height:
            raise MalformedSnapshot("canvas has no size")

        detection = await self.pipeline.detect(snapshot)
        x, y = click_point(detection, (width, height))
        logger.info("Bounding box: clicking canvas at (%.0f, %.0f)", x, y)

        await simulate_click(canvas, left + x, top + y)
        await asyncio.sleep(settings.solve_delay)
        await self.submit(frame)
        return Outcome.SUBMITTED
