"""Open a page in Chrome and keep solving hCaptcha challenges on it.

Usage:
    python -m hcsolver URL [--headless] [--models-dir DIR] [--model-repo REPO]
"""

import argparse
import asyncio
import logging

from hcsolver._models import ModelProvider, ModelStore
from hcsolver._settings import Settings
from hcsolver.browser import HCaptchaSolver

logger = logging.getLogger("hcsolver")


async def _run(args: argparse.Namespace) -> None:
    try:
        from patchright.async_api import async_playwright
    except ImportError:
        raise ImportError(
            "patchright is required for browser solving. "
            "Install with: pip install hcsolver"
        ) from None

    store = ModelStore(ModelProvider(args.models_dir, args.model_repo))
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            channel="chrome",
            headless=args.headless,
            args=["--disable-blink-features=AutomationControlled"],
        )
        try:
            page = await browser.new_page()
            await page.goto(args.url, wait_until="domcontentloaded")
            logger.info("Opened %s", args.url)
            solver = HCaptchaSolver(page, settings=Settings.from_env, store=store)
            await solver.run()
        finally:
            await browser.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="hCaptcha challenge solver")
    parser.add_argument("url", help="Page hosting the hCaptcha widget")
    parser.add_argument(
        "--headless", action="store_true", help="Run Chrome headless",
    )
    parser.add_argument(
        "--models-dir", default=None,
        help="Directory of <label>.onnx models (default: $HCSOLVER_MODEL_DIR)",
    )
    parser.add_argument(
        "--model-repo", default=None,
        help="HuggingFace repo to download models from "
        "(default: $HCSOLVER_MODEL_REPO)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
