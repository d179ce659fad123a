"""Read-only queries against the hCaptcha frames.

Everything here is a thin wrapper over patchright's async Frame and
ElementHandle APIs. The JS snippets are module constants so tests can
answer them without a browser.
"""

import logging
import re

from hcsolver._text import clean_prompt

logger = logging.getLogger("hcsolver")

JS_BODY_SIZE = (
    "() => { const r = document.body.getBoundingClientRect();"
    " return [r.width, r.height]; }"
)
JS_DISPLAY = "e => e.style.display"
JS_BACKGROUND = "e => e.style.background"
JS_IS_CONNECTED = "e => e.isConnected"
JS_CLIENT_RECT = (
    "e => { const r = e.getBoundingClientRect();"
    " return [r.left, r.top, r.width, r.height]; }"
)
JS_CANVAS_JPEG = "c => c.toDataURL('image/jpeg')"

CHECKBOX = "div.check"
ANCHOR = "#anchor"
PROMPT = "h2.prompt-text"
CELLS = ".task-image, .challenge-answer"
CELL_IMAGE = "div.image"
CANVAS = ".challenge-view > canvas"
SUBMIT = ".button-submit"
REFRESH = ".refresh.button"
LANGUAGE_TEXT = ".display-language .text"
ENGLISH_OPTION = ".language-selector .option:nth-child(23)"

# First double-quoted token that isn't at the start of the style value
_QUOTED_RE = re.compile(r'(?!^)".*?"')


def find_frame(page, fragment: str):
    """Find an hCaptcha iframe by URL fragment (e.g. 'frame=checkbox')."""
    for frame in page.frames:
        if "hcaptcha" in frame.url and fragment in frame.url:
            return frame
    return None


async def is_showing(frame) -> bool:
    """True when the frame's body has a non-zero rendered size."""
    size = await frame.evaluate(JS_BODY_SIZE)
    if not size:
        return False
    width, height = size
    return bool(width) and bool(height)


async def is_widget_frame(frame) -> bool:
    if not await is_showing(frame):
        return False
    return await frame.query_selector(CHECKBOX) is not None


async def is_image_frame(frame) -> bool:
    if not await is_showing(frame):
        return False
    return await frame.query_selector(PROMPT) is not None


async def is_solved(frame) -> bool:
    check = await frame.query_selector(CHECKBOX)
    if check is None:
        return False
    return await check.evaluate(JS_DISPLAY) == "block"


async def read_prompt(frame) -> str | None:
    """Decoded, whitespace-collapsed prompt text, or None."""
    el = await frame.query_selector(PROMPT)
    if el is None:
        return None
    return clean_prompt(await el.inner_text())


def parse_background_url(background: str | None) -> str | None:
    """Pull the image URL out of an inline ``background`` style value."""
    if not background:
        return None
    matches = _QUOTED_RE.findall(background.strip())
    if not matches:
        return None
    return matches[0].replace('"', "") or None


async def image_url(el) -> str | None:
    return parse_background_url(await el.evaluate(JS_BACKGROUND))


async def canvas_jpeg(canvas) -> str:
    return await canvas.evaluate(JS_CANVAS_JPEG)


async def is_attached(el) -> bool:
    if el is None:
        return False
    return bool(await el.evaluate(JS_IS_CONNECTED))


async def is_selected(el) -> bool:
    return await el.get_attribute("aria-pressed") == "true"


async def client_rect(el) -> tuple[float, float, float, float]:
    """(left, top, width, height) in the frame's viewport."""
    left, top, width, height = await el.evaluate(JS_CLIENT_RECT)
    return left, top, width, height
