"""Synthetic pointer clicks."""

import logging
import math

from hcsolver.browser._dom import client_rect

logger = logging.getLogger("hcsolver")

EVENT_SEQUENCE = (
    "mouseover",
    "mouseenter",
    "mousedown",
    "mouseup",
    "click",
    "mouseout",
)


def _finite(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


async def simulate_click(element, client_x=None, client_y=None) -> bool:
    """Dispatch hover/press/release/click/leave on ``element``.

    Coordinates default to the center of the element's client rect.
    Returns False without dispatching if they are not finite numbers.
    """
    if client_x is None or client_y is None:
        left, top, width, height = await client_rect(element)
        client_x = left + width / 2
        client_y = top + height / 2

    if not (_finite(client_x) and _finite(client_y)):
        logger.debug("Skipping click at non-finite (%r, %r)", client_x, client_y)
        return False

    for name in EVENT_SEQUENCE:
        await element.dispatch_event(name, {
            "detail": 0 if name == "mouseover" else 1,
            "bubbles": True,
            "cancelable": True,
            "clientX": client_x,
            "clientY": client_y,
        })
    logger.debug("Clicked at (%.0f, %.0f)", client_x, client_y)
    return True
