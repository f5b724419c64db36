"""Command-line entry point: join a meeting and stream it to WhisperLive."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from playwright.async_api import async_playwright

from meetlive import context, scripts
from meetlive.config import BotConfig, load_config
from meetlive.errors import CaptureError
from meetlive.join import join_meeting, wait_for_admission
from meetlive.logging_utils import log_bot, setup_logging
from meetlive.orchestrator import SessionOrchestrator
from meetlive.server import create_app

logger = logging.getLogger("meetlive.main")

BROWSER_ARGS = [
    "--use-fake-ui-for-media-stream",
    "--use-fake-device-for-media-stream",
    "--autoplay-policy=no-user-gesture-required",
]


async def run_bot(config: BotConfig, headless: bool = False) -> int:
    if not config.meeting_url:
        logger.error("Meeting URL is required but is not set.")
        return 2
    if not config.websocket_url:
        logger.error("WHISPER_LIVE_URL is not set. Cannot start recording.")
        return 2

    done = asyncio.Event()

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=headless, args=BROWSER_ARGS)
        browser_context = await browser.new_context(permissions=["microphone", "camera"])
        page = await browser_context.new_page()
        await page.expose_function(scripts.LOG_BINDING, log_bot)

        orchestrator = SessionOrchestrator(
            page,
            config,
            on_graceful_leave=done.set,
            on_left=lambda _left: done.set(),
        )
        server = uvicorn.Server(uvicorn.Config(
            create_app(orchestrator),
            host=context.CONTROL_HOST,
            port=context.CONTROL_PORT,
            log_level="warning",
        ))
        server_task = asyncio.create_task(server.serve())

        exit_code = 0
        try:
            await join_meeting(page, config.meeting_url, config.bot_name)
            if not await wait_for_admission(page, config.automatic_leave.waiting_room_timeout_ms):
                return 1

            await orchestrator.start()
            await done.wait()
        except CaptureError as e:
            logger.error("Could not start capture: %s", e)
            exit_code = 1
        finally:
            await orchestrator.leave()
            server.should_exit = True
            await server_task
            await browser.close()

    return exit_code


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Join a meeting and stream its audio for transcription.")
    parser.add_argument("--config", required=True, help="Path to the bot YAML config.")
    parser.add_argument("--headless", action="store_true", help="Run Chromium headless.")
    parser.add_argument("--log-dir", default="logs")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    setup_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)
    config = load_config(args.config)
    return asyncio.run(run_bot(config, headless=args.headless))


if __name__ == "__main__":
    sys.exit(main())
