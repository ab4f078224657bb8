"""Celery background tasks for PersonaChat."""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from celery import Task

from .celery_app import celery_app
from .config import settings
from .database import engine
from .delivery import GreenApiChannel
from .dispatch import DispatchScheduler
from .generation import OpenAIContentGenerator
from .services import UsageTracker

logger = logging.getLogger(__name__)


class AsyncTask(Task):
    """Base task class that supports async operations."""

    def __call__(self, *args, **kwargs):
        """Run coroutine tasks to completion in a fresh event loop."""
        result = self.run(*args, **kwargs)
        if asyncio.iscoroutine(result):
            return asyncio.run(_with_engine_cleanup(result))
        return result


async def _with_engine_cleanup(coro):
    # Pooled connections are bound to the loop that opened them
    try:
        return await coro
    finally:
        await engine.dispose()


def tick_time(now: Optional[datetime] = None) -> datetime:
    """Naive wall-clock time in the configured zone. Naive input is taken as already local."""
    now = now or datetime.now(ZoneInfo(settings.TIMEZONE))
    if now.tzinfo is None:
        return now
    return now.astimezone(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)


@celery_app.task(base=AsyncTask)
async def dispatch_persona_messages(now: Optional[str] = None) -> dict:
    """
    Run one dispatch tick.

    Args:
        now: Optional ISO timestamp overriding the tick time (manual replays)

    Returns:
        Tick summary
    """
    tick_now = tick_time(datetime.fromisoformat(now) if now else None)
    logger.info(f"Starting dispatch tick for {tick_now.isoformat()}")

    scheduler = DispatchScheduler(
        generator=OpenAIContentGenerator(),
        channel=GreenApiChannel(),
    )
    try:
        report = await scheduler.run_dispatch_tick(tick_now)
    except Exception as exc:
        logger.error(f"Error in dispatch tick: {exc}")
        raise

    return report.summary()


@celery_app.task(base=AsyncTask)
async def reset_api_usage() -> dict:
    """
    Reset every user's generation counter.

    Runs daily at midnight.
    """
    try:
        logger.info("Starting daily usage reset")
        count = await UsageTracker().reset_all_usage()
        return {
            "users_reset": count,
            "timestamp": datetime.utcnow().isoformat(),
        }
    except Exception as exc:
        logger.error(f"Error in usage reset task: {exc}")
        raise
