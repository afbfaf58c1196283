"""Cadence entry point."""

import asyncio
import contextlib
import logging

from cadence.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def build_engine():
    """Wire the store, notifier, content generator, executor and engine."""
    from cadence.content.generator import ClaudeContentGenerator
    from cadence.notifications.log_channel import LogChannel
    from cadence.notifications.router import Notifier
    from cadence.scheduler.engine import SchedulerEngine
    from cadence.scheduler.executor import TaskExecutor
    from cadence.scheduler.store import TaskStore

    store = TaskStore.get()
    notifier = Notifier.get()
    if notifier.get_channel("log") is None:
        notifier.register_channel(LogChannel())

    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY is empty; summary and learning tasks will fail")

    executor = TaskExecutor(
        store=store,
        notifier=notifier,
        content_generator=ClaudeContentGenerator(),
    )
    return SchedulerEngine(store=store, executor=executor, notifier=notifier)


async def run() -> None:
    """Start the engine and keep it running until cancelled."""
    engine = build_engine()
    await engine.start()
    try:
        await asyncio.Event().wait()
    finally:
        await engine.stop()
        from cadence.notifications.router import Notifier

        await Notifier.get().drain()


def main() -> None:
    """Run the scheduler until interrupted."""
    logger.info("Starting Cadence (db=%s, tz=%s)...", settings.database_path, settings.scheduler_timezone)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run())
    logger.info("Cadence stopped")


if __name__ == "__main__":
    main()
