"""Background sweeper for the XP outbox.

Runs as an asyncio task during the application lifespan. Awards are
normally applied right after the accept that created them; this loop picks
up whatever that attempt left pending (crash, DB hiccup) and retries it
every ``XP_OUTBOX_INTERVAL_SECONDS``.
"""

import asyncio
import os

from skillswap.database import get_db_session
from skillswap.logging_config import get_logger
from skillswap.services.xp_service import apply_pending_awards

logger = get_logger(__name__)

XP_OUTBOX_INTERVAL_SECONDS = int(os.getenv("XP_OUTBOX_INTERVAL_SECONDS", "60"))


async def run_outbox_cycle() -> int:
    """Single cycle: drain pending awards in batches. Returns the number applied."""
    applied = 0
    async with get_db_session() as session:
        while True:
            batch = await apply_pending_awards(session)
            applied += batch
            if batch == 0:
                break

    if applied > 0:
        logger.info("xp_outbox_cycle_complete", awards_applied=applied)
    return applied


async def xp_outbox_loop(stop_event: asyncio.Event) -> None:
    """Main sweeper loop. Runs until stop_event is set."""
    logger.info("xp_outbox_started", interval_seconds=XP_OUTBOX_INTERVAL_SECONDS)

    while not stop_event.is_set():
        try:
            await run_outbox_cycle()
        except Exception:
            logger.exception("xp_outbox_cycle_error")

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=XP_OUTBOX_INTERVAL_SECONDS)
            break
        except asyncio.TimeoutError:
            pass
