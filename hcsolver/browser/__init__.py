"""hCaptcha automation on a patchright (patched Playwright) page."""

from hcsolver.browser._detect import ChallengeWatcher
from hcsolver.browser._hcaptcha import HCaptchaSolver, Outcome
from hcsolver.browser._interact import simulate_click

__all__ = [
    "ChallengeWatcher",
    "HCaptchaSolver",
    "Outcome",
    "simulate_click",
]
