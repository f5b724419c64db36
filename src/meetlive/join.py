"""Best-effort Google Meet join flow."""

import asyncio
import logging
import random

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from meetlive import selectors

logger = logging.getLogger(__name__)


def random_delay(amount_ms: int) -> float:
    return (amount_ms * (0.5 + random.random())) / 1000


async def join_meeting(page: Page, meeting_url: str, bot_name: str) -> None:
    await page.goto(meeting_url, wait_until="networkidle")
    await page.bring_to_front()

    logger.info("Waiting for page elements to settle after navigation...")
    await asyncio.sleep(5)

    await asyncio.sleep(random_delay(1000))
    await page.wait_for_selector(selectors.NAME_INPUT, timeout=120_000)
    await asyncio.sleep(random_delay(1000))
    await page.fill(selectors.NAME_INPUT, bot_name)

    for selector, what in ((selectors.MIC_OFF_BUTTON, "Microphone"), (selectors.CAMERA_OFF_BUTTON, "Camera")):
        try:
            await asyncio.sleep(random_delay(500))
            await page.click(selector, timeout=200)
            await asyncio.sleep(0.2)
        except PlaywrightTimeoutError:
            logger.info("%s already off or not found.", what)

    await page.wait_for_selector(selectors.ASK_TO_JOIN_BUTTON, timeout=60_000)
    await page.click(selectors.ASK_TO_JOIN_BUTTON)
    logger.info("%s asked to join the meeting.", bot_name)


async def wait_for_admission(page: Page, timeout_ms: int) -> bool:
    try:
        await page.wait_for_selector(selectors.ADMITTED_MARKER, timeout=timeout_ms)
    except PlaywrightTimeoutError:
        logger.error("Bot was not admitted into the meeting within %dms", timeout_ms)
        return False
    logger.info("Successfully admitted to the meeting")
    return True
