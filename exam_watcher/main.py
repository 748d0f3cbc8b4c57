#!/usr/bin/env python3
"""
Main entry point for the Exam Watcher bot.

Startup sequence:
1. Load configuration from the environment
2. Verify the Telegram bot can be reached (fatal if not)
3. Start the keep-alive server
4. Run one cycle immediately, then on the configured cron schedule

The process runs until interrupted. Cycle failures are logged and never
stop the process.
"""

import os
import signal
import sys

from exam_watcher.health import HealthServer
from exam_watcher.items import FeedKind
from exam_watcher.notify import StartupConnectivityError, TelegramNotifier
from exam_watcher.scheduler import CycleScheduler
from exam_watcher.utils import WatcherConfig, get_logger, load_config, setup_logging
from exam_watcher.watcher import FeedWatcher


# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_ENV_ERROR = 2


def build_watcher(config: WatcherConfig, notifier: TelegramNotifier) -> FeedWatcher:
    """Create the feed watcher for the configured feed URLs."""
    feeds = {
        FeedKind(kind): url
        for kind, url in config.feed_urls().items()
    }
    return FeedWatcher(feeds=feeds, notifier=notifier)


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt()


def run(config: WatcherConfig) -> int:
    """
    Start monitoring with the given configuration.

    Blocks until the scheduler stops.

    Returns:
        Exit code for the process.
    """
    logger = get_logger("main")

    logger.info("Starting Exam Notification Bot...")
    for kind, url in config.feed_urls().items():
        logger.info(f"Target URL for {kind}: {url}")

    notifier = TelegramNotifier(config.bot_token, config.channel_id)

    try:
        notifier.check_connection()
    except StartupConnectivityError as e:
        logger.error(f"{e}")
        logger.error(
            "Cannot start monitoring without Telegram connection. "
            "Please check your token and internet connection."
        )
        notifier.close()
        return EXIT_FAILURE

    watcher = build_watcher(config, notifier)

    try:
        scheduler = CycleScheduler(watcher.run_cycle, config.check_interval)
    except ValueError as e:
        logger.error(f"Invalid CHECK_INTERVAL: {e}")
        notifier.close()
        return EXIT_ENV_ERROR

    health = HealthServer(config.port, lambda: watcher.last_checked)
    health.start()

    logger.info(f"Updates will be sent to Telegram channel: {config.channel_id}")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down")
    finally:
        scheduler.shutdown()
        health.stop()
        watcher.close()
        notifier.close()

    return EXIT_SUCCESS


def main() -> int:
    """
    Main entry point for the Exam Watcher bot.

    Sets up logging, loads configuration and runs the bot with proper
    error handling.

    Returns:
        Exit code for the process.
    """
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    setup_logging(log_level)
    logger = get_logger("main")

    try:
        config = load_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ENV_ERROR

    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)

    try:
        return run(config)

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_SUCCESS

    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
