"""Shared fakes for hcsolver tests: DOM handles, frames, models, images."""

import base64
import io

import numpy as np
from PIL import Image

from hcsolver._errors import ModelUnavailable
from hcsolver._image import MEAN, STD
from hcsolver.browser._dom import (
    ANCHOR,
    CELL_IMAGE,
    CELLS,
    CHECKBOX,
    JS_BACKGROUND,
    JS_BODY_SIZE,
    JS_CANVAS_JPEG,
    JS_CLIENT_RECT,
    JS_DISPLAY,
    JS_IS_CONNECTED,
    PROMPT,
    REFRESH,
    SUBMIT,
)

CHALLENGE_URL = (
    "https://newassets.hcaptcha.com/captcha/v1/abc/static/hcaptcha.html"
    "#frame=challenge&id=0x1"
)
CHECKBOX_URL = (
    "https://newassets.hcaptcha.com/captcha/v1/abc/static/hcaptcha.html"
    "#frame=checkbox&id=0x1"
)

# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def png_bytes(color=(255, 0, 0), size=(32, 32)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


def data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


def color_url(color) -> str:
    return data_url(png_bytes(color))


def noise_url(size=(320, 240), seed: int = 0) -> str:
    """A data URL well above the minimum capture size."""
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, (size[1], size[0], 3), dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, "PNG")
    return data_url(buf.getvalue())


def pixel_of(tensor) -> tuple[int, int, int]:
    """Recover the RGB color of a normalized uniform-color input tensor."""
    arr = np.asarray(tensor, dtype=np.float32)
    flat = arr.reshape(-1)
    idx = np.arange(flat.size) % 3
    raw = (flat * STD[idx] + MEAN[idx]).reshape(arr.shape[1], -1)
    return tuple(int(round(v)) for v in raw.mean(axis=1) * 255)


# ---------------------------------------------------------------------------
# DOM
# ---------------------------------------------------------------------------


class FakeElement:
    """Element handle answering the queries hcsolver makes."""

    def __init__(
        self,
        *,
        attached: bool = True,
        rect=(0, 0, 100, 100),
        background: str | None = None,
        attrs: dict | None = None,
        text: str | None = None,
        children: dict | None = None,
        display: str | None = None,
        jpeg: str | None = None,
    ):
        self.attached = attached
        self.rect = rect
        self.background = background
        self.attrs = attrs or {}
        self.text = text
        self.children = children or {}
        self.display = display
        self.jpeg = jpeg
        self.events: list[tuple[str, dict]] = []

    async def evaluate(self, js, arg=None):
        return {
            JS_IS_CONNECTED: self.attached,
            JS_CLIENT_RECT: list(self.rect),
            JS_BACKGROUND: self.background,
            JS_DISPLAY: self.display,
            JS_CANVAS_JPEG: self.jpeg,
        }[js]

    async def get_attribute(self, name):
        return self.attrs.get(name)

    async def inner_text(self):
        return self.text

    async def text_content(self):
        return self.text

    async def query_selector(self, selector):
        return self.children.get(selector)

    async def dispatch_event(self, type, event_init=None):
        self.events.append((type, dict(event_init or {})))

    @property
    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]

    @property
    def clicks(self) -> list[tuple[float, float]]:
        return [
            (init["clientX"], init["clientY"])
            for name, init in self.events
            if name == "click"
        ]


class FakeFrame:
    """Frame with selector -> element(s) tables."""

    def __init__(
        self,
        url: str = CHALLENGE_URL,
        body=(400, 600),
        elements: dict | None = None,
        lists: dict | None = None,
        detached: bool = False,
    ):
        self.url = url
        self.body = body
        self.elements = elements or {}
        self.lists = lists or {}
        self.detached = detached
        self.gate = None  # asyncio.Event blocking the prompt query

    async def evaluate(self, js, arg=None):
        assert js == JS_BODY_SIZE
        return list(self.body)

    async def query_selector(self, selector):
        if selector == PROMPT and self.gate is not None:
            await self.gate.wait()
        return self.elements.get(selector)

    async def query_selector_all(self, selector):
        return list(self.lists.get(selector, []))

    def is_detached(self) -> bool:
        return self.detached


class FakeResponse:
    def __init__(self, status: int, body: bytes = b""):
        self.status = status
        self._body = body

    async def body(self):
        return self._body


class FakeRequest:
    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.urls: list[str] = []

    async def get(self, url):
        self.urls.append(url)
        return self.responses.get(url, FakeResponse(404))


class FakePage:
    def __init__(self, frames=(), responses=None):
        self.frames = list(frames)
        self.request = FakeRequest(responses)


def make_cell(source: str, selected: bool = False, attached: bool = True):
    image = FakeElement(
        background=f'url("{source}") center center / 100% no-repeat'
    )
    return FakeElement(
        attached=attached,
        children={CELL_IMAGE: image},
        attrs={"aria-pressed": "true" if selected else "false"},
    )


def challenge_frame(
    prompt: str,
    marker: str | None = None,
    cells=(),
    canvas=None,
):
    """Challenge frame showing ``prompt`` with the given layout marker."""
    elements = {
        PROMPT: FakeElement(text=prompt),
        SUBMIT: FakeElement(rect=(300, 550, 80, 30)),
        REFRESH: FakeElement(rect=(20, 550, 30, 30)),
    }
    if marker:
        elements[marker] = FakeElement()
    if canvas is not None:
        elements[".challenge-view > canvas"] = canvas
    return FakeFrame(elements=elements, lists={CELLS: list(cells)})


def checkbox_frame(solved: bool = False):
    return FakeFrame(
        url=CHECKBOX_URL,
        body=(300, 74),
        elements={
            CHECKBOX: FakeElement(display="block" if solved else "none"),
            ANCHOR: FakeElement(rect=(0, 0, 300, 74)),
        },
    )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class FakeModel:
    def __init__(self, label: str, output_names=("output",)):
        self.label = label
        self.output_names = list(output_names)


class FakeEngine:
    """Engine whose outputs come from per-label handlers ``feeds -> array``."""

    def __init__(self, handlers: dict):
        self.handlers = handlers
        self.calls: list[tuple[str, dict]] = []

    async def run(self, model, feeds):
        self.calls.append((model.label, feeds))
        return {model.output_names[0]: self.handlers[model.label](feeds)}

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self.calls]


class FakeStore:
    """Model store serving FakeModels for the handler labels only."""

    def __init__(self, engine: FakeEngine, unavailable=()):
        self.engine = engine
        self.unavailable = set(unavailable)
        self.requested: list[str] = []

    async def get(self, label):
        self.requested.append(label)
        if label in self.unavailable or label not in self.engine.handlers:
            raise ModelUnavailable(label, 404)
        return FakeModel(label)
