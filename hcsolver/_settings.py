"""Per-tick solver settings.

Settings are read-only snapshots. The hosting shell supplies a flat mapping
(``auto_open``, ``auto_solve``, ``click_delay_time``, ``solve_delay_time``)
once per polling tick; delays are in milliseconds.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger("hcsolver")

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    logger.debug("Unrecognized boolean setting %r, using %s", value, default)
    return default


def _as_ms(value, default: float) -> float:
    if value is None:
        return default
    try:
        ms = float(value)
    except (TypeError, ValueError):
        logger.debug("Unrecognized delay setting %r, using %s", value, default)
        return default
    return max(0.0, ms)


@dataclass(frozen=True)
class Settings:
    """Solver behavior switches and humanized delays (milliseconds)."""

    auto_open: bool = True
    auto_solve: bool = True
    click_delay_time: float = 300
    solve_delay_time: float = 3000

    @property
    def click_delay(self) -> float:
        """Delay before each selection, in seconds."""
        return self.click_delay_time / 1000

    @property
    def solve_delay(self) -> float:
        """Delay before submitting, in seconds."""
        return self.solve_delay_time / 1000

    @classmethod
    def from_mapping(cls, data: Mapping | None) -> "Settings":
        """Build settings from the collaborator's flat key/value mapping.

        Unknown keys are ignored, missing or unparseable keys keep defaults.
        """
        data = data or {}
        return cls(
            auto_open=_as_bool(data.get("auto_open"), cls.auto_open),
            auto_solve=_as_bool(data.get("auto_solve"), cls.auto_solve),
            click_delay_time=_as_ms(
                data.get("click_delay_time"), cls.click_delay_time
            ),
            solve_delay_time=_as_ms(
                data.get("solve_delay_time"), cls.solve_delay_time
            ),
        )

    @classmethod
    def from_env(cls, environ: Mapping | None = None) -> "Settings":
        """Read ``HCSOLVER_*`` environment variables."""
        env = os.environ if environ is None else environ
        return cls.from_mapping({
            "auto_open": env.get("HCSOLVER_AUTO_OPEN"),
            "auto_solve": env.get("HCSOLVER_AUTO_SOLVE"),
            "click_delay_time": env.get("HCSOLVER_CLICK_DELAY_TIME"),
            "solve_delay_time": env.get("HCSOLVER_SOLVE_DELAY_TIME"),
        })
